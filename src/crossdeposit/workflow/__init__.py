"""Deposit workflow: resolve, build, deposit, notify, poll."""

from crossdeposit.workflow.controller import WorkflowController, WorkflowRun, WorkflowState
from crossdeposit.workflow.deposit import (
    DepositExecutor,
    GaslessDepositExecutor,
    OnChainDepositExecutor,
    create_deposit_executors,
    notify_deposit,
    select_deposit_executor,
)
from crossdeposit.workflow.intent import IntentBuilder
from crossdeposit.workflow.orchestration import (
    OrchestrationRequestBuilder,
    RunKind,
    classify_run,
    encode_module_config,
    is_same_chain,
)
from crossdeposit.workflow.poller import CancellationToken, StatusPoller
from crossdeposit.workflow.resolver import ModuleResolver

__all__ = [
    "WorkflowController",
    "WorkflowRun",
    "WorkflowState",
    "DepositExecutor",
    "GaslessDepositExecutor",
    "OnChainDepositExecutor",
    "create_deposit_executors",
    "notify_deposit",
    "select_deposit_executor",
    "IntentBuilder",
    "OrchestrationRequestBuilder",
    "RunKind",
    "classify_run",
    "encode_module_config",
    "is_same_chain",
    "CancellationToken",
    "StatusPoller",
    "ModuleResolver",
]
