from somnia_mcp.batch import BatchExecutor, ContractWrite, NativeTransfer

from .conftest import ALICE, BOB, CAROL, TOKEN, FakeSigner


def _transfers():
    return [NativeTransfer(ALICE, 1), NativeTransfer(BOB, 2), NativeTransfer(CAROL, 3)]


def test_continue_on_error_attempts_everything():
    signer = FakeSigner(fail_on=[1])
    result = BatchExecutor(signer).run(_transfers(), continue_on_error=True)

    assert len(result.results) == 3
    assert [r.success for r in result.results] == [True, False, True]
    assert result.successful == 2
    assert result.failed == 1
    assert result.success is False
    assert "insufficient funds" in result.results[1].error
    assert len(signer.sent) == 3


def test_stop_on_first_failure():
    signer = FakeSigner(fail_on=[1])
    result = BatchExecutor(signer).run(_transfers(), continue_on_error=False)

    assert [r.index for r in result.results] == [0, 1]
    assert result.total == 3
    assert result.successful == 1
    assert result.failed == 1
    assert result.stopped_early
    assert len(signer.sent) == 2


def test_missing_operation_fails_without_network_call():
    signer = FakeSigner()
    result = BatchExecutor(signer).run([NativeTransfer(ALICE, 1), None, NativeTransfer(BOB, 2)])

    assert [r.success for r in result.results] == [True, False, True]
    assert result.results[1].error == "Operation is missing."
    assert [s[1] for s in signer.sent] == [ALICE, BOB]


def test_all_successful_batch():
    result = BatchExecutor(FakeSigner()).run(_transfers())
    assert result.success
    assert [r.tx_hash for r in result.results] == ["0x" + f"{i:064x}" for i in (1, 2, 3)]
    assert result.results[0].as_dict() == {"index": 0, "success": True, "to": ALICE, "amount": "1", "tx_hash": "0x" + f"{1:064x}"}


def test_contract_writes_go_through_signer():
    signer = FakeSigner()
    op = ContractWrite(TOKEN, [], "transfer", (ALICE, 5))
    result = BatchExecutor(signer).run([op])
    assert result.success
    assert signer.sent == [("write", TOKEN, "transfer", (ALICE, 5), 0)]
    assert result.results[0].as_dict()["function_name"] == "transfer"
