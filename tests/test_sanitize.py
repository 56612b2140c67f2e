"""
Unit tests for code-fence stripping.
"""

from note_forge.core.sanitize import strip_code_fences

DOC = "<!DOCTYPE html>\n<html><body><p>Hi</p></body></html>"


class TestStripCodeFences:
    """Test strip_code_fences."""

    def test_plain_document_unchanged(self):
        assert strip_code_fences(DOC) == DOC

    def test_html_fence_removed(self):
        assert strip_code_fences(f"```html\n{DOC}\n```") == DOC

    def test_bare_fence_removed(self):
        assert strip_code_fences(f"```\n{DOC}\n```\n") == DOC

    def test_surrounding_whitespace_removed(self):
        assert strip_code_fences(f"\n\n  ```html\r\n{DOC}\r\n```  \n") == DOC

    def test_only_opening_fence(self):
        assert strip_code_fences(f"```html\n{DOC}") == DOC

    def test_inner_fences_preserved(self):
        body = "<html><pre>```python\nprint(1)\n```</pre></html>"
        assert strip_code_fences(body) == body

    def test_none_and_empty(self):
        assert strip_code_fences(None) == ""
        assert strip_code_fences("```html\n```") == ""
