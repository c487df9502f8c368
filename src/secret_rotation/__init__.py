from secret_rotation.lib.enums import Eligibility, RotationStep, StepStatus, VersionStage
from secret_rotation.lib.exceptions import (
  MissingCollaborator,
  NoVersionsForRotation,
  PendingVersionTimeout,
  RemoteError,
  RemoteNotFound,
  RevokeFailed,
  RotationError,
  RotationIneligible,
  RotationNotEnabled,
  StepMismatch,
  UnknownRequestVersion,
  ValidationFailed,
  VersionNotPending,
)
from secret_rotation.lib.interface import RotationRequest, SecretMaterial, StagingSnapshot, StepResult
from secret_rotation.lib.rotation import RotationController, open_controller, rotate
from secret_rotation.lib.secret_store import BotoSecretStore, SecretStore

__version__ = '0.1.0'
