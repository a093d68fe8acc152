import pytest

from app.platform.exceptions import (
    STATUS_BY_CODE,
    AccountError,
    ErrorCode,
    check_status_mapping,
)


class TestErrorCodes:
    """Test suite for the error code to HTTP status mapping"""

    @pytest.mark.parametrize("code", list(ErrorCode))
    def test_every_code_has_a_status(self, code):
        assert AccountError(code, "boom").status_code == STATUS_BY_CODE[code]

    def test_full_mapping_passes(self):
        check_status_mapping(STATUS_BY_CODE)

    def test_incomplete_mapping_raises(self):
        partial = {ErrorCode.VALIDATION: 400}

        with pytest.raises(RuntimeError) as exc_info:
            check_status_mapping(partial)
        assert "CONFLICT" in str(exc_info.value)
