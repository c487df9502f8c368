import asyncio
from json import dumps
from logging import getLogger
from typing import Any, Callable, Mapping
from aws_xray_sdk.core import xray_recorder
from secret_rotation.configuration import Configuration
from secret_rotation.lib.interface import RotationRequest
from secret_rotation.lib.rotation import rotate
from secret_rotation.lib.secret_store import BotoSecretStore, SecretStore

logger = getLogger(__name__)

def get_time_available_seconds(context, margin:float)->float:
  """
  Determines how long the step may run before Lambda stops it.
  """
  if context is None or not hasattr(context, 'get_remaining_time_in_millis'):
    return None

  remaining = max(0.0, context.get_remaining_time_in_millis() / 1000.0)
  # Short-lived functions keep half their time instead of the full margin
  return remaining - min(margin, remaining / 2)

class RotationFunction:
  """
  Represents the Amazon Lambda entry point of a rotation function.

    rotation = RotationFunction(generate=new_password, apply=set_password, check=try_login)
    def process_notification(event, context):
      return rotation.handle(event, context)
  """
  def __init__(self, generate:Callable=None, apply:Callable=None, check:Callable=None, revoke_previous:Callable=None, configuration:Configuration=None, store:SecretStore=None) -> None:
    if configuration is None:
      configuration = Configuration.from_environment()

    self.__configuration = configuration
    self.__store = store
    self.generate = generate
    self.apply = apply
    self.check = check
    self.revoke_previous = revoke_previous

  @property
  def configuration(self)->Configuration:
    return self.__configuration

  @property
  def store(self)->SecretStore:
    # Created on first use so the handler module imports without credentials
    if self.__store is None:
      self.__store = BotoSecretStore.from_configuration(self.configuration)
    return self.__store

  async def run(self, request:RotationRequest)->Mapping[str,Any]:
    result = await rotate(request, self.store,
      generate=self.generate,
      apply=self.apply,
      check=self.check,
      revoke_previous=self.revoke_previous,
      poll_interval=self.configuration.poll_interval,
      max_wait=self.configuration.max_wait)

    logger.info(str(result))
    return result.as_dict()

  @xray_recorder.capture('RotationFunction::handle')
  def handle(self, event:Mapping[str,Any], context=None)->Mapping[str,Any]:
    getLogger('secret_rotation').setLevel(self.configuration.log_level)
    logger.info(dumps(event))

    request = RotationRequest.from_event(event)
    timeout = get_time_available_seconds(context, self.configuration.timeout_margin)
    try:
      return asyncio.run(asyncio.wait_for(self.run(request), timeout=timeout))
    except asyncio.TimeoutError:
      logger.error('{} for secret {} did not complete within {}s'.format(
        request.step, request.secret_id, timeout))
      raise

  def __call__(self, event:Mapping[str,Any], context=None)->Mapping[str,Any]:
    return self.handle(event, context)
