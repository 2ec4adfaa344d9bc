"""
Option structures for activity and child-workflow calls.

Engine-neutral: adapters translate them into their own option types.
"""

from datetime import timedelta
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RetryPolicy(BaseModel):
    """Retry policy for activities and child workflows."""

    model_config = ConfigDict(frozen=True)

    initial_interval: timedelta = Field(default=timedelta(seconds=1), description="First retry delay")
    backoff_coefficient: float = Field(default=2.0, ge=1.0, description="Delay multiplier")
    maximum_interval: Optional[timedelta] = Field(None, description="Upper bound for the delay")
    maximum_attempts: int = Field(default=0, ge=0, description="0 means unlimited")
    non_retriable_error_reasons: List[str] = Field(default_factory=list, description="Reasons never retried")


class ActivityOptions(BaseModel):
    """Options applied to activities executed under a context."""

    model_config = ConfigDict(frozen=True)

    task_list: Optional[str] = Field(None, description="Task list override")
    schedule_to_close_timeout: Optional[timedelta] = None
    schedule_to_start_timeout: Optional[timedelta] = None
    start_to_close_timeout: Optional[timedelta] = Field(default=timedelta(minutes=5))
    heartbeat_timeout: Optional[timedelta] = None
    wait_for_cancellation: bool = False
    activity_id: Optional[str] = None
    retry_policy: Optional[RetryPolicy] = None


class ChildWorkflowOptions(BaseModel):
    """Options applied to child workflows executed under a context."""

    model_config = ConfigDict(frozen=True)

    domain: Optional[str] = Field(None, description="Domain (namespace) override")
    workflow_id: Optional[str] = None
    task_list: Optional[str] = Field(None, description="Task list override")
    execution_start_to_close_timeout: Optional[timedelta] = None
    task_start_to_close_timeout: Optional[timedelta] = None
    wait_for_cancellation: bool = False
    cron_schedule: Optional[str] = None
    memo: Optional[Dict[str, Any]] = None
    search_attributes: Optional[Dict[str, Any]] = None
    retry_policy: Optional[RetryPolicy] = None


class RegisterOptions(BaseModel):
    """Options for workflow and activity registration."""

    model_config = ConfigDict(frozen=True)

    name: Optional[str] = None
    enable_short_name: bool = False
    disable_already_registered_check: bool = False
