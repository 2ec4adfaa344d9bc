"""
Option translation between the engine-neutral option models and the keyword
arguments of temporalio's workflow.start_activity / start_child_workflow.

Pure mappings: no engine calls, no defaults invented beyond what the models
carry. An absent retry policy stays absent.
"""

from typing import Any, Dict, Optional

from temporalio import workflow
from temporalio.common import RetryPolicy as TemporalRetryPolicy

from ..workflow.errors import INVALID_ARGUMENT, CustomError
from ..workflow.options import ActivityOptions, ChildWorkflowOptions, RetryPolicy


def to_retry_policy(policy: Optional[RetryPolicy]) -> Optional[TemporalRetryPolicy]:
    if policy is None:
        return None
    return TemporalRetryPolicy(
        initial_interval=policy.initial_interval,
        backoff_coefficient=policy.backoff_coefficient,
        maximum_interval=policy.maximum_interval,
        maximum_attempts=policy.maximum_attempts,
        non_retryable_error_types=list(policy.non_retriable_error_reasons) or None,
    )


def activity_kwargs(options: ActivityOptions, default_task_queue: Optional[str] = None) -> Dict[str, Any]:
    """Keyword arguments for workflow.start_activity."""
    kwargs: Dict[str, Any] = {
        "task_queue": options.task_list or default_task_queue,
        "schedule_to_close_timeout": options.schedule_to_close_timeout,
        "schedule_to_start_timeout": options.schedule_to_start_timeout,
        "start_to_close_timeout": options.start_to_close_timeout,
        "heartbeat_timeout": options.heartbeat_timeout,
        "cancellation_type": (
            workflow.ActivityCancellationType.WAIT_CANCELLATION_COMPLETED
            if options.wait_for_cancellation
            else workflow.ActivityCancellationType.TRY_CANCEL
        ),
    }
    if options.activity_id:
        kwargs["activity_id"] = options.activity_id
    retry = to_retry_policy(options.retry_policy)
    if retry is not None:
        kwargs["retry_policy"] = retry
    return kwargs


def child_workflow_kwargs(
    options: ChildWorkflowOptions,
    namespace: str,
    workflow_id: str,
    default_task_queue: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Keyword arguments for workflow.start_child_workflow.

    Raises:
        CustomError(INVALID_ARGUMENT): options name a domain other than the
            current namespace (children share their parent's namespace)
    """
    if options.domain and options.domain != namespace:
        raise CustomError(
            INVALID_ARGUMENT,
            f"child workflow domain '{options.domain}' differs from namespace '{namespace}'",
        )
    kwargs: Dict[str, Any] = {
        "id": options.workflow_id or workflow_id,
        "task_queue": options.task_list or default_task_queue,
        "execution_timeout": options.execution_start_to_close_timeout,
        "task_timeout": options.task_start_to_close_timeout,
        "cancellation_type": (
            workflow.ChildWorkflowCancellationType.WAIT_CANCELLATION_COMPLETED
            if options.wait_for_cancellation
            else workflow.ChildWorkflowCancellationType.TRY_CANCEL
        ),
    }
    if options.cron_schedule:
        kwargs["cron_schedule"] = options.cron_schedule
    if options.memo:
        kwargs["memo"] = dict(options.memo)
    if options.search_attributes:
        kwargs["search_attributes"] = {k: v if isinstance(v, list) else [v] for k, v in options.search_attributes.items()}
    retry = to_retry_policy(options.retry_policy)
    if retry is not None:
        kwargs["retry_policy"] = retry
    return kwargs
