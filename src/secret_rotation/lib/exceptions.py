"""
Errors raised while driving a secret through its rotation steps.
"""

class RotationError(Exception):
  """
  Base class for every rotation failure.
  """

class InvalidRotationEvent(RotationError, ValueError):
  """
  The triggering event is missing a field or names an unknown step.
  """

class MissingCollaborator(RotationError, ValueError):
  """
  The step needs a caller-supplied function that was not given.
  """

class StepMismatch(RotationError):
  """
  A step operation was invoked on a controller bound to another step.
  This is a caller bug and is never retried.
  """
  def __init__(self, bound_step, expected_step) -> None:
    super().__init__('{}: Expect in step {}.'.format(bound_step, expected_step))
    self.bound_step = bound_step
    self.expected_step = expected_step

class RotationIneligible(RotationError):
  """
  The secret or the requested version cannot be rotated right now.
  """
  def __init__(self, message:str, secret_id:str, version_id:str=None) -> None:
    super().__init__(message)
    self.secret_id = secret_id
    self.version_id = version_id

class RotationNotEnabled(RotationIneligible):
  pass

class NoVersionsForRotation(RotationIneligible):
  pass

class UnknownRequestVersion(RotationIneligible):
  pass

class VersionNotPending(RotationIneligible):
  pass

class RemoteError(RotationError):
  """
  Any failure reported by the secret store.
  """
  def __init__(self, message:str, code:str=None, operation:str=None) -> None:
    super().__init__(message)
    self.code = code
    self.operation = operation

class RemoteNotFound(RemoteError):
  """
  The requested secret, version or stage does not exist (yet).
  """

class PendingVersionTimeout(RemoteNotFound):
  """
  The pending version did not become readable within the allowed wait.
  """

class ValidationFailed(RotationError):
  """
  The consumer rejected the pending secret during testSecret.
  """
  def __init__(self, message:str, secret_id:str, version_id:str=None) -> None:
    super().__init__(message)
    self.secret_id = secret_id
    self.version_id = version_id

class RevokeFailed(RotationError):
  """
  The previous version could not be revoked after finishSecret.
  The promotion itself is committed and is carried in result.
  """
  def __init__(self, message:str, result) -> None:
    super().__init__(message)
    self.result = result
