"""Tests for issue description HTML cleanup."""
import pytest
from ahura_core import mutations, schemas
from ahura_core.html_utils import sanitize_description


class TestSanitizeDescription:
    """Test the description allow-list."""

    def test_empty_descriptions_become_none(self):
        assert sanitize_description(None) is None
        assert sanitize_description("") is None

    def test_script_is_removed_with_its_content(self):
        assert sanitize_description("<p>Hi</p><script>alert(1)</script>") == "<p>Hi</p>"

    def test_allowed_tags_are_kept(self):
        html = "<p><strong>Bold</strong> and <em>soft</em></p><ul><li>one</li></ul><pre><code>x = 1</code></pre>"
        assert sanitize_description(html) == html

    def test_disallowed_tags_keep_their_text(self):
        assert sanitize_description("<div><span>Plain</span></div>") == "Plain"

    def test_link_attributes_are_filtered(self):
        cleaned = sanitize_description('<a href="https://ahurasense.test" target="_blank" onclick="steal()">docs</a>')

        assert 'href="https://ahurasense.test"' in cleaned
        assert 'target="_blank"' in cleaned
        assert "onclick" not in cleaned

    def test_style_attributes_are_dropped(self):
        assert sanitize_description('<p style="color:red">Red</p>') == "<p>Red</p>"


class TestIssueDescriptions:
    """Test that issue writes store cleaned descriptions."""

    def test_create_strips_script(self, make_issue):
        issue = make_issue("Scripted", description="<p>Steps</p><script>alert(1)</script>")
        assert issue.description == "<p>Steps</p>"

    def test_update_strips_script(self, db, owner, make_issue):
        issue = make_issue("Scripted later")

        updated = mutations.update_issue(
            db, owner, issue.id,
            schemas.IssueUpdate(description='<p onmouseover="x()">Text</p><script>alert(1)</script>'),
        )
        assert updated.description == "<p>Text</p>"

    def test_update_can_clear_description(self, db, owner, make_issue):
        issue = make_issue("Described", description="<p>Old</p>")

        updated = mutations.update_issue(db, owner, issue.id, schemas.IssueUpdate(description=None))
        assert updated.description is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
