import asyncio
from functools import partial
from logging import getLogger
from typing import Any, Callable, Iterable, Mapping
import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from secret_rotation.lib.enums import VersionStage
from secret_rotation.lib.exceptions import RemoteError, RemoteNotFound
from secret_rotation.lib.interface import SecretMaterial, StagingSnapshot

logger = getLogger(__name__)

class SecretStore:
  """
  Represents the remote secret store used during a rotation.
  Every call is a coroutine; a missing secret, version or stage
  raises RemoteNotFound and any other failure raises RemoteError.
  """
  async def describe(self, secret_id:str)->StagingSnapshot:
    raise NotImplementedError()

  async def get_value(self, secret_id:str, version_id:str=None, version_stage:VersionStage=None)->SecretMaterial:
    raise NotImplementedError()

  async def put_value(self, secret_id:str, version_id:str, material:SecretMaterial, stages:Iterable[VersionStage])->None:
    raise NotImplementedError()

  async def move_stage(self, secret_id:str, stage:VersionStage, move_to_version_id:str=None, remove_from_version_id:str=None)->None:
    raise NotImplementedError()

  async def random_password(self, length:int=32, exclude_characters:str=None, exclude_punctuation:bool=False)->str:
    raise NotImplementedError()

class BotoSecretStore(SecretStore):
  """
  Represents AWS Secrets Manager accessed through boto3.
  The boto3 client is blocking, so each call runs on the loop's executor.
  """
  def __init__(self, client, executor=None) -> None:
    assert client != None, "No secretsmanager client"
    self.__client = client
    self.__executor = executor

  @staticmethod
  def create_client(region_name:str=None, endpoint_url:str=None):
    return boto3.client('secretsmanager',
      region_name=region_name,
      endpoint_url=endpoint_url,
      config=Config(retries={'mode':'standard'}))

  @staticmethod
  def from_configuration(configuration):
    return BotoSecretStore(BotoSecretStore.create_client(
      region_name=configuration.region_name,
      endpoint_url=configuration.endpoint_url))

  @property
  def client(self):
    return self.__client

  async def describe(self, secret_id:str)->StagingSnapshot:
    response = await self.__call(self.client.describe_secret,
      SecretId=secret_id)
    return StagingSnapshot.from_response(response)

  async def get_value(self, secret_id:str, version_id:str=None, version_stage:VersionStage=None)->SecretMaterial:
    request = {'SecretId': secret_id}
    if version_id is not None:
      request['VersionId'] = version_id
    if version_stage is not None:
      request['VersionStage'] = version_stage.value

    response = await self.__call(self.client.get_secret_value, **request)
    return SecretMaterial.from_response(response)

  async def put_value(self, secret_id:str, version_id:str, material:SecretMaterial, stages:Iterable[VersionStage])->None:
    await self.__call(self.client.put_secret_value,
      SecretId=secret_id,
      ClientRequestToken=version_id,
      VersionStages=[stage.value for stage in stages],
      **material.as_request())

  async def move_stage(self, secret_id:str, stage:VersionStage, move_to_version_id:str=None, remove_from_version_id:str=None)->None:
    request = {
      'SecretId': secret_id,
      'VersionStage': stage.value,
    }
    if move_to_version_id is not None:
      request['MoveToVersionId'] = move_to_version_id
    if remove_from_version_id is not None:
      request['RemoveFromVersionId'] = remove_from_version_id

    await self.__call(self.client.update_secret_version_stage, **request)

  async def random_password(self, length:int=32, exclude_characters:str=None, exclude_punctuation:bool=False)->str:
    request = {
      'PasswordLength': length,
      'ExcludePunctuation': exclude_punctuation,
    }
    if exclude_characters:
      request['ExcludeCharacters'] = exclude_characters

    response = await self.__call(self.client.get_random_password, **request)
    return response['RandomPassword']

  async def __call(self, operation:Callable, **kwargs)->Mapping[str,Any]:
    loop = asyncio.get_running_loop()
    try:
      return await loop.run_in_executor(self.__executor, partial(operation, **kwargs))
    except ClientError as error:
      raise BotoSecretStore.translate(error) from error
    except BotoCoreError as error:
      name = getattr(operation, '__name__', 'secretsmanager')
      logger.error('Secrets Manager call {} failed with {}'.format(name, error))
      raise RemoteError(str(error), operation=name) from error

  @staticmethod
  def translate(error:ClientError)->RemoteError:
    details = error.response.get('Error', {})
    code = details.get('Code')
    message = details.get('Message', str(error))
    operation = error.operation_name

    if code == 'ResourceNotFoundException':
      return RemoteNotFound(message, code=code, operation=operation)

    logger.error('{} failed with {}: {}'.format(operation, code, message))
    return RemoteError(message, code=code, operation=operation)
