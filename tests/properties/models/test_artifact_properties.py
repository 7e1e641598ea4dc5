"""Property-based tests for model directory naming."""

import pytest
from hypothesis import given, strategies as st

from tabbystack.exceptions import InvalidModelReferenceError
from tabbystack.models import model_dir_name

# =============================================================================
# Strategies
# =============================================================================

segment = st.text(
    alphabet=st.characters(whitelist_categories=["L", "N"], whitelist_characters="-._"),
    min_size=1,
    max_size=30,
).filter(lambda x: x.strip() and x.strip() not in (".", ".."))

revision = st.text(
    alphabet=st.characters(whitelist_categories=["L", "N"], whitelist_characters="._"),
    min_size=1,
    max_size=10,
).filter(lambda x: x.strip())


class TestModelDirName:
    @given(segment, segment, revision)
    def test_uses_last_segment(self, org: str, name: str, rev: str) -> None:
        assert model_dir_name(f"{org}/{name}", rev) == f"{name.strip()}_{rev.strip()}"

    @given(segment, revision)
    def test_is_a_single_path_component(self, name: str, rev: str) -> None:
        result = model_dir_name(f"org/{name}", rev)

        assert "/" not in result
        assert "\\" not in result

    @given(segment, revision, revision)
    def test_separator_in_revision_rejected(self, name: str, left: str, right: str) -> None:
        with pytest.raises(InvalidModelReferenceError):
            _ = model_dir_name(f"org/{name}", f"{left}/{right}")
