# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Error taxonomy of a network convergence pass.

Every error that leaves the VPC or Subnet reconcilers is one of the types below. Raw botocore errors are translated
at the boundary (see :func:`translate_client_error`) and chained, so the AWS error code stays reachable through
``__cause__`` and ``error_code``.
"""

from typing import List, NoReturn, Optional, Sequence

from botocore.exceptions import ClientError, WaiterError


class NetworkReconcileError(Exception):
    def __init__(self, message: str, resource_id: Optional[str] = None, error_code: Optional[str] = None) -> None:
        super().__init__(message)
        self.resource_id = resource_id
        self.error_code = error_code


class NotFoundError(NetworkReconcileError):
    """Resource is absent or not visible yet (eventual consistency)."""


class IPv6BlockNotFoundError(NetworkReconcileError):
    """IPv6 was requested but the VPC has no associated IPv6 block.

    Not a NotFoundError on purpose: a VPC exists, so this must never lead to the creation of another one.
    """


class ConflictError(NetworkReconcileError):
    """More than one resource matched where exactly one was expected. Requires operator cleanup."""


class ProviderRejectedError(NetworkReconcileError):
    """Malformed request, permission denial, quota, etc. Terminal for the pass."""


class InvalidSpecError(NetworkReconcileError):
    """Desired state violates a caller contract (e.g duplicate IPv6 block indexes, create in unmanaged mode)."""


class WaitTimeoutError(NetworkReconcileError):
    """A provider waiter or the local retry budget elapsed before the resource reached the expected state."""


class AggregateAttributeError(NetworkReconcileError):
    """Collects the failures of independent attribute operations so that one does not mask the others."""

    def __init__(self, message: str, errors: Sequence[Exception], resource_id: Optional[str] = None) -> None:
        self.errors: List[Exception] = list(errors)
        details = "; ".join([str(error) for error in self.errors])
        super().__init__(f"{message}: [{details}]", resource_id=resource_id)


def client_error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


def translate_client_error(error: Exception, context: str, resource_id: Optional[str] = None) -> NetworkReconcileError:
    """Map a provider error into the taxonomy, attaching which resource and operation failed.

    Callers are expected to ``raise translate_client_error(...) from error``.
    """
    if isinstance(error, NetworkReconcileError):
        return error

    if isinstance(error, ClientError):
        code = client_error_code(error)
        message = f"{context}: {code}: {error.response.get('Error', {}).get('Message', str(error))}"
        if code.endswith("NotFound") or code.endswith("NotFoundException"):
            return NotFoundError(message, resource_id=resource_id, error_code=code)
        return ProviderRejectedError(message, resource_id=resource_id, error_code=code)

    if isinstance(error, WaiterError):
        code = error.last_response.get("Error", {}).get("Code", "")
        if not code:
            # waiter ceiling reached without an error response
            return WaitTimeoutError(f"{context}: {error}", resource_id=resource_id)
        if code.endswith("NotFound"):
            return NotFoundError(f"{context}: {code}", resource_id=resource_id, error_code=code)
        return ProviderRejectedError(f"{context}: {code}", resource_id=resource_id, error_code=code)

    return ProviderRejectedError(f"{context}: {error!r}", resource_id=resource_id)


def raise_translated(error: Exception, context: str, resource_id: Optional[str] = None) -> NoReturn:
    """Raise the translated form of 'error' chained to it, or 'error' itself when it is already translated."""
    translated = translate_client_error(error, context, resource_id)
    if translated is error:
        raise error
    raise translated from error
