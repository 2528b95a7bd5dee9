# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Tests for urlsigner/errors.py."""

import pytest

from urlsigner.errors import (
    InvalidInput,
    NotFound,
    SignedURLError,
    SigningFailed,
    SigningUnavailable,
)


class TestErrorHierarchy:
    """Tests for the error taxonomy."""

    @pytest.mark.parametrize(
        "error_cls",
        [InvalidInput, NotFound, SigningFailed, SigningUnavailable],
    )
    def test_all_share_base(self, error_cls: type[Exception]) -> None:
        assert issubclass(error_cls, SignedURLError)

    def test_invalid_input_is_value_error(self) -> None:
        """Callers catching ValueError also catch bad input."""
        with pytest.raises(ValueError):
            raise InvalidInput("bad")

    def test_signing_errors_are_distinct(self) -> None:
        assert not issubclass(SigningFailed, SigningUnavailable)
        assert not issubclass(SigningUnavailable, SigningFailed)
        assert not issubclass(SigningFailed, ValueError)
