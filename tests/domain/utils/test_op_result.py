import pytest
from pymongo.errors import ServerSelectionTimeoutError

from app.domain.utils.op_result import OpOutcome, OpResult, guard_backend


class TestOpResult:
    @pytest.mark.parametrize(
        ("result", "ok"),
        [
            (OpResult.apply("x"), True),
            (OpResult.noop("x", reason="already_live"), True),
            (OpResult.skipped("below_minimum_duration"), True),
            (OpResult.conflict("bad transition"), False),
            (OpResult.not_found(), False),
            (OpResult.dropped("no_matching_recording"), False),
            (OpResult.backend_unavailable(), False),
        ],
    )
    def test_ok(self, result: OpResult, ok: bool):
        assert result.ok is ok

    def test_applied_carries_value(self):
        result = OpResult.apply({"id": 1}, reason="adopted_orphan")

        assert result.applied is True
        assert result.value == {"id": 1}
        assert result.reason == "adopted_orphan"
        assert str(result.outcome) == "applied"


class TestGuardBackend:
    async def test_connection_failure_becomes_result(self):
        @guard_backend
        async def flaky() -> OpResult:
            raise ServerSelectionTimeoutError("no servers")

        result = await flaky()

        assert result.outcome == OpOutcome.BACKEND_UNAVAILABLE
        assert "no servers" in result.reason

    async def test_other_errors_propagate(self):
        @guard_backend
        async def broken() -> OpResult:
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await broken()

    async def test_passthrough(self):
        @guard_backend
        async def fine() -> OpResult:
            return OpResult.noop(reason="already_ended")

        assert (await fine()).reason == "already_ended"
