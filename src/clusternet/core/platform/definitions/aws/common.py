# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import logging
import time
from typing import Callable, Iterable, Optional

import boto3
from botocore.exceptions import ClientError, WaiterError

from clusternet.core.entity import CoreData
from clusternet.core.network.errors import (
    AggregateAttributeError,
    NetworkReconcileError,
    WaitTimeoutError,
    translate_client_error,
)

module_logger = logging.getLogger(__name__)


def get_code_for_exception(error):
    if isinstance(error, ClientError) and "Code" in error.response.get("Error", {}):
        return error.response["Error"]["Code"]
    elif isinstance(error, WaiterError) and "Error" in error.last_response:
        return error.last_response["Error"]["Code"]
    elif getattr(error, "error_code", None):
        return error.error_code

    return error.__class__.__name__


# common AWS service errors
AWS_COMMON_RETRYABLE_ERRORS = [
    "TooManyRequestsException",
    "Throttling",
    "ThrottlingException",
    "RequestLimitExceeded",
    "Unavailable",
    "InternalFailure",
    "InternalError",
    "InternalServerError",
    "ServiceUnavailable",
    "ServiceUnavailableException",
    "ConnectTimeoutError",
    "ReadTimeoutError",
]

MAX_SLEEP_INTERVAL_PARAM = "_max_sleep_time_in_secs"
MAX_SLEEP_INTERVAL_DEFAULT = 64 + 1


def exponential_retry(func, service_retryable_errors, *func_args, **func_kwargs):
    """
    Retries the specified function with a simple exponential backoff algorithm.
    :param func: The function to retry.
    :param service_retryable_errors: AWS service specific retryable error codes. These are added to an internal list
                                    of AWS common retryable errors to get a final list of retryable errors. Anything else
                                    is raised without a retry.
    :param func_args: The positional arguments to pass to the function.
    :param func_kwargs: The keyword arguments to pass to the function.
    :return: The return value of the retried function.
    """
    retryables = list(AWS_COMMON_RETRYABLE_ERRORS)
    retryables.extend(service_retryable_errors)
    sleepy_time = 1
    if MAX_SLEEP_INTERVAL_PARAM in func_kwargs:
        max_sleepy_time = func_kwargs.get(MAX_SLEEP_INTERVAL_PARAM)
        del func_kwargs[MAX_SLEEP_INTERVAL_PARAM]
    else:
        max_sleepy_time = MAX_SLEEP_INTERVAL_DEFAULT
    func_return = None
    while True:
        try:
            func_return = func(*func_args, **func_kwargs)
            module_logger.debug("Ran %s, got %s.", func.__name__ if hasattr(func, "__name__") else str(func), func_return)
            break
        except Exception as error:
            error_code = get_code_for_exception(error)
            if error_code in retryables:
                module_logger.critical(
                    f"Sleeping for {sleepy_time} to give AWS time to " f"connect resources. Retryable error_code={error_code!r}"
                )
                time.sleep(sleepy_time)
                sleepy_time = sleepy_time * 2
                if sleepy_time < max_sleepy_time:
                    continue
            raise
    return func_return


class Backoff(CoreData):
    def __init__(
        self, initial_delay_in_secs: float = 1, factor: float = 2, max_delay_in_secs: float = 30, max_attempts: int = 8
    ) -> None:
        if max_attempts < 1:
            raise ValueError(f"Backoff needs at least one attempt, got max_attempts={max_attempts}")
        self.initial_delay_in_secs = initial_delay_in_secs
        self.factor = factor
        self.max_delay_in_secs = max_delay_in_secs
        self.max_attempts = max_attempts

    def delay(self, attempt: int) -> float:
        """Sleep time after the given (zero based) failed attempt."""
        return min(self.initial_delay_in_secs * (self.factor**attempt), self.max_delay_in_secs)


DEFAULT_BACKOFF = Backoff()


def _is_retryable(error: Exception, retryables: Iterable[str]) -> bool:
    if isinstance(error, AggregateAttributeError):
        return bool(error.errors) and all(_is_retryable(e, retryables) for e in error.errors)
    if isinstance(error, (ClientError, WaiterError)) or getattr(error, "error_code", None):
        return get_code_for_exception(error) in retryables
    return False


def wait_for_with_retryable(
    condition: Callable[[], bool],
    retryable_errors: Iterable[str],
    resource_id: str,
    backoff: Optional[Backoff] = None,
) -> None:
    """Runs 'condition' until it returns True.

    Errors carrying one of the 'retryable_errors' codes (or the common AWS retryable codes) and a False return are
    retried with a bounded exponential backoff. Any other error is raised immediately. When the attempt budget is
    exhausted the last error is raised in translated form, naming 'resource_id'.
    """
    backoff = backoff if backoff else DEFAULT_BACKOFF
    retryables = set(AWS_COMMON_RETRYABLE_ERRORS) | set(retryable_errors)
    last_error: Optional[Exception] = None
    for attempt in range(backoff.max_attempts):
        try:
            if condition():
                return
            last_error = None
        except Exception as error:
            if not _is_retryable(error, retryables):
                raise
            last_error = error
            module_logger.info(f"Retryable error_code={get_code_for_exception(error)!r} while waiting on {resource_id!r}")

        if attempt + 1 < backoff.max_attempts:
            time.sleep(backoff.delay(attempt))

    context = f"gave up waiting on {resource_id!r} after {backoff.max_attempts} attempts"
    if last_error is None:
        raise WaitTimeoutError(context, resource_id=resource_id)
    if isinstance(last_error, NetworkReconcileError):
        raise last_error
    raise translate_client_error(last_error, context, resource_id=resource_id) from last_error


def get_session(region: Optional[str] = None, profile_name: Optional[str] = None) -> boto3.Session:
    if profile_name:
        return boto3.Session(profile_name=profile_name, region_name=region)
    return boto3.Session(region_name=region)
