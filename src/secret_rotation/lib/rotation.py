import asyncio
from inspect import isawaitable
from logging import getLogger
from time import monotonic
from typing import Any, Callable
from secret_rotation.lib.enums import Eligibility, RotationStep, StepStatus, VersionStage
from secret_rotation.lib.exceptions import (
  MissingCollaborator,
  NoVersionsForRotation,
  PendingVersionTimeout,
  RemoteError,
  RemoteNotFound,
  RevokeFailed,
  RotationNotEnabled,
  StepMismatch,
  UnknownRequestVersion,
  ValidationFailed,
  VersionNotPending,
)
from secret_rotation.lib.interface import RotationRequest, SecretMaterial, StagingSnapshot, StepResult
from secret_rotation.lib.secret_store import SecretStore

logger = getLogger(__name__)

DEFAULT_POLL_INTERVAL = 1.0

async def _resolve(value:Any)->Any:
  if isawaitable(value):
    return await value
  return value

def check_eligibility(request:RotationRequest, snapshot:StagingSnapshot)->Eligibility:
  """
  Applies the rotation gates in order; the first failing gate wins.
  """
  secret_id = request.secret_id
  token = request.client_request_token

  if not snapshot.rotation_enabled:
    logger.error('Secret {} is not enabled for rotation.'.format(secret_id))
    raise RotationNotEnabled(
      'Secret {} is not enabled for rotation.'.format(secret_id),
      secret_id=secret_id)

  if snapshot.versions_to_stages is None:
    logger.error('Secret {} has no version for rotation.'.format(secret_id))
    raise NoVersionsForRotation(
      'Secret {} has no version for rotation.'.format(secret_id),
      secret_id=secret_id)

  if not snapshot.has_version(token):
    logger.error('Secret version {} has no stage for rotation of secret {}.'.format(token, secret_id))
    raise UnknownRequestVersion(
      'Secret version {} has no stage for rotation of secret {}.'.format(token, secret_id),
      secret_id=secret_id,
      version_id=token)

  if snapshot.has_stage(token, VersionStage.CURRENT):
    logger.info('Secret version {} already set as {} for secret {}.'.format(token, VersionStage.CURRENT, secret_id))
    return Eligibility.ALREADY_ROTATED

  if not snapshot.has_stage(token, VersionStage.PENDING):
    logger.error('Secret version {} not set as {} for rotation of secret {}.'.format(token, VersionStage.PENDING, secret_id))
    raise VersionNotPending(
      'Secret version {} not set as {} for rotation of secret {}.'.format(token, VersionStage.PENDING, secret_id),
      secret_id=secret_id,
      version_id=token)

  return Eligibility.READY

async def open_controller(request:RotationRequest, store:SecretStore, poll_interval:float=DEFAULT_POLL_INTERVAL, max_wait:float=None):
  """
  Creates a RotationController once the secret is known to be eligible.
  Raises one of the RotationIneligible errors otherwise.
  """
  snapshot = await store.describe(request.secret_id)
  eligibility = check_eligibility(request, snapshot)
  return RotationController(request, store,
    eligibility=eligibility,
    poll_interval=poll_interval,
    max_wait=max_wait)

class RotationController:
  """
  Drives one rotation attempt of a secret through its four steps.
  Instances are bound to a single request; use open_controller to build one.
  """
  def __init__(self, request:RotationRequest, store:SecretStore, eligibility:Eligibility=Eligibility.READY, poll_interval:float=DEFAULT_POLL_INTERVAL, max_wait:float=None) -> None:
    assert request != None, "No rotation request"
    assert store != None, "No secret store"

    self.__request = request
    self.__store = store
    self.__eligibility = eligibility
    self.__poll_interval = max(0.0, poll_interval)
    self.__max_wait = max_wait

  @property
  def request(self)->RotationRequest:
    return self.__request

  @property
  def store(self)->SecretStore:
    return self.__store

  @property
  def eligibility(self)->Eligibility:
    return self.__eligibility

  @property
  def already_rotated(self)->bool:
    return self.eligibility == Eligibility.ALREADY_ROTATED

  @property
  def secret_id(self)->str:
    return self.request.secret_id

  @property
  def token(self)->str:
    return self.request.client_request_token

  async def create(self, generate:Callable)->StepResult:
    step = self.__check_step(RotationStep.CREATE_SECRET)
    if self.already_rotated:
      return self.__already_rotated(step)

    try:
      material = await self.store.get_value(self.secret_id, version_id=self.token)
      logger.info('{}: Successfully retrieved version {}, created at {}, of secret {}.'.format(
        step, self.token, material.created_date, self.secret_id))
      return StepResult(step, StepStatus.ALREADY_CREATED,
        'Version {} of secret {} already exists.'.format(self.token, self.secret_id),
        material=material)
    except RemoteNotFound:
      pass

    material = SecretMaterial.from_value(await _resolve(generate()))
    await self.store.put_value(self.secret_id, self.token, material, [VersionStage.PENDING])
    logger.info('{}: Successfully put the secret for ARN {} with version {}.'.format(
      step, self.secret_id, self.token))

    return StepResult(step, StepStatus.CREATED,
      'Created version {} of secret {} as {}.'.format(self.token, self.secret_id, VersionStage.PENDING),
      material=material)

  async def set(self, apply:Callable=None)->StepResult:
    step = self.__check_step(RotationStep.SET_SECRET)
    if self.already_rotated:
      return self.__already_rotated(step)

    material = await self.fetch_pending()
    if apply is not None:
      await _resolve(apply(material))
    logger.info('{}: Successfully set the secret in the service.'.format(step))

    return StepResult(step, StepStatus.APPLIED,
      'Applied version {} of secret {}.'.format(material.version_id, self.secret_id),
      material=material)

  async def test(self, check:Callable)->StepResult:
    step = self.__check_step(RotationStep.TEST_SECRET)
    if self.already_rotated:
      return self.__already_rotated(step)

    material = await self.fetch_pending()
    try:
      accepted = await _resolve(check(material))
    except ValidationFailed:
      raise
    except Exception as error:
      logger.error('{}: Version {} of secret {} failed validation with {}'.format(
        step, material.version_id, self.secret_id, error))
      raise ValidationFailed(
        'Version {} of secret {} failed validation: {}'.format(material.version_id, self.secret_id, error),
        secret_id=self.secret_id,
        version_id=material.version_id) from error

    if accepted is False:
      logger.error('{}: Version {} of secret {} was rejected.'.format(step, material.version_id, self.secret_id))
      raise ValidationFailed(
        'Version {} of secret {} was rejected.'.format(material.version_id, self.secret_id),
        secret_id=self.secret_id,
        version_id=material.version_id)

    logger.info('{}: Successfully test the secret in the service.'.format(step))
    return StepResult(step, StepStatus.TESTED,
      'Tested version {} of secret {}.'.format(material.version_id, self.secret_id),
      material=material)

  async def finish(self)->StepResult:
    step = self.__check_step(RotationStep.FINISH_SECRET)
    if self.already_rotated:
      return self.__already_rotated(step)

    current = await self.store.get_value(self.secret_id, version_stage=VersionStage.CURRENT)
    if current.version_id == self.token:
      logger.info('{}: Version {} already marked as {} for {}.'.format(
        step, current.version_id, VersionStage.CURRENT, self.secret_id))
      return StepResult(step, StepStatus.ALREADY_FINISHED,
        'Version {} is already {} for secret {}.'.format(self.token, VersionStage.CURRENT, self.secret_id))

    # Moves CURRENT and demotes the old version in one call
    await self.store.move_stage(self.secret_id, VersionStage.CURRENT,
      move_to_version_id=self.token,
      remove_from_version_id=current.version_id)

    residual_pending = False
    try:
      await self.store.move_stage(self.secret_id, VersionStage.PENDING,
        remove_from_version_id=self.token)
    except RemoteError as error:
      # CURRENT is already correct; only a stale PENDING label remains
      residual_pending = True
      logger.warning('{}: Version {} is {} but still labeled {} for secret {}: {}'.format(
        step, self.token, VersionStage.CURRENT, VersionStage.PENDING, self.secret_id, error))

    logger.info('{}: Successfully set {} to version {} for secret {}.'.format(
      step, VersionStage.CURRENT, self.token, self.secret_id))
    return StepResult(step, StepStatus.FINISHED,
      'Promoted version {} to {} for secret {}.'.format(self.token, VersionStage.CURRENT, self.secret_id),
      residual_pending=residual_pending)

  async def revoke_previous(self, revoke:Callable, missing_ok:bool=False)->StepResult:
    """
    Hands the AWSPREVIOUS version to revoke; usable from any step.
    With missing_ok, a secret without AWSPREVIOUS returns None instead of raising.
    """
    try:
      previous = await self.store.get_value(self.secret_id, version_stage=VersionStage.PREVIOUS)
    except RemoteNotFound:
      if not missing_ok:
        raise
      logger.info('revokePreviousSecret: Secret {} has no {} version.'.format(
        self.secret_id, VersionStage.PREVIOUS))
      return None

    await _resolve(revoke(previous))
    logger.info('revokePreviousSecret: Successfully revoke previous version {} for secret {}.'.format(
      previous.version_id, self.secret_id))

    return StepResult(self.request.step, StepStatus.REVOKED,
      'Revoked previous version {} of secret {}.'.format(previous.version_id, self.secret_id),
      material=previous)

  async def fetch_pending(self)->SecretMaterial:
    """
    Reads the AWSPENDING version, polling until the label is visible.
    Unbounded unless max_wait was given; callers are expected to cancel.
    """
    started = monotonic()
    attempts = 0
    while True:
      attempts += 1
      try:
        return await self.store.get_value(self.secret_id, version_stage=VersionStage.PENDING)
      except RemoteNotFound as error:
        waited = monotonic() - started
        if self.__max_wait is not None and waited >= self.__max_wait:
          raise PendingVersionTimeout(
            'Secret {} has no {} version after {} attempts ({}s).'.format(
              self.secret_id, VersionStage.PENDING, attempts, round(waited, 2)),
            code=error.code,
            operation=error.operation) from error

        delay = self.__poll_interval
        if self.__max_wait is not None:
          delay = min(delay, self.__max_wait - waited)

        logger.info('{} not yet visible for secret {} (attempt {}), retrying in {}s'.format(
          VersionStage.PENDING, self.secret_id, attempts, round(delay, 2)))
        await asyncio.sleep(delay)

  def __check_step(self, expect:RotationStep)->RotationStep:
    if self.request.step != expect:
      logger.error('{}: Expect in step {}.'.format(self.request.step, expect))
      raise StepMismatch(self.request.step, expect)
    return expect

  def __already_rotated(self, step:RotationStep)->StepResult:
    logger.info('{}: Version {} of secret {} is already {}; nothing to do.'.format(
      step, self.token, self.secret_id, VersionStage.CURRENT))
    return StepResult(step, StepStatus.ALREADY_ROTATED,
      'Version {} is already {} for secret {}.'.format(self.token, VersionStage.CURRENT, self.secret_id))

async def rotate(request:RotationRequest, store:SecretStore, generate:Callable=None, apply:Callable=None, check:Callable=None, revoke_previous:Callable=None, poll_interval:float=DEFAULT_POLL_INTERVAL, max_wait:float=None)->StepResult:
  """
  revoke_previous runs after every finishSecret, replays included, and must be idempotent.
  revoke_previous runs after a successful finishSecret that promoted the version.
  """
  if request.step == RotationStep.CREATE_SECRET and generate is None:
    raise MissingCollaborator('{} requires a secret generator'.format(request.step))
  if request.step == RotationStep.TEST_SECRET and check is None:
    raise MissingCollaborator('{} requires a secret check'.format(request.step))

  controller = await open_controller(request, store,
    poll_interval=poll_interval,
    max_wait=max_wait)

  if request.step == RotationStep.CREATE_SECRET:
    return await controller.create(generate)
  elif request.step == RotationStep.SET_SECRET:
    return await controller.set(apply)
  elif request.step == RotationStep.TEST_SECRET:
    return await controller.test(check)

  result = await controller.finish()
  if revoke_previous is None:
    return result

  # Replayed finishes revoke again, so revoke_previous must be idempotent
  try:
    await controller.revoke_previous(revoke_previous, missing_ok=True)
  except Exception as error:
    logger.error('{}: Version {} is {} for secret {} but revoking {} failed with {}'.format(
      request.step, request.client_request_token, VersionStage.CURRENT, request.secret_id, VersionStage.PREVIOUS, error))
    raise RevokeFailed(
      'Revoking {} of secret {} failed: {}'.format(VersionStage.PREVIOUS, request.secret_id, error),
      result=result) from error
  return result
