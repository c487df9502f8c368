from datetime import datetime
from json import loads
from typing import Any, FrozenSet, Mapping, Optional
from secret_rotation.lib.enums import RotationStep, StepStatus, VersionStage
from secret_rotation.lib.exceptions import InvalidRotationEvent

class RotationRequest:
  """
  Represents the rotation event sent by AWS Secrets Manager.
  """
  def __init__(self, step:RotationStep, secret_id:str, client_request_token:str) -> None:
    if not isinstance(step, RotationStep):
      raise InvalidRotationEvent('Expecting a RotationStep, not {}'.format(step))
    if not secret_id:
      raise InvalidRotationEvent('No SecretId specified')
    if not client_request_token:
      raise InvalidRotationEvent('No ClientRequestToken specified')

    self.__step = step
    self.__secret_id = secret_id
    self.__client_request_token = client_request_token

  @staticmethod
  def from_event(event:Mapping[str,Any]):
    for key in ['Step', 'SecretId', 'ClientRequestToken']:
      if not key in event:
        raise InvalidRotationEvent('Expecting {} in payload'.format(key))

    try:
      step = RotationStep.parse(event['Step'])
    except ValueError as error:
      raise InvalidRotationEvent(str(error)) from error

    return RotationRequest(
      step=step,
      secret_id=event['SecretId'],
      client_request_token=event['ClientRequestToken'])

  @property
  def step(self)->RotationStep:
    return self.__step

  @property
  def secret_id(self)->str:
    return self.__secret_id

  @property
  def client_request_token(self)->str:
    return self.__client_request_token

  def __str__(self) -> str:
    return 'RotationRequest:[{} {} -> {}]'.format(
      self.step,
      self.secret_id,
      self.client_request_token)

class SecretMaterial:
  """
  Represents the payload of one secret version.
  Only one of secret_binary and secret_string is meaningful.
  """
  def __init__(self, secret_string:str=None, secret_binary:bytes=None, version_id:str=None, version_stages:list=None, created_date:datetime=None) -> None:
    self.__secret_string = secret_string
    self.__secret_binary = secret_binary
    self.__version_id = version_id
    self.__version_stages = frozenset(version_stages or [])
    self.__created_date = created_date

  @staticmethod
  def from_response(response:Mapping[str,Any]):
    """
    Reads a GetSecretValue response.
    """
    return SecretMaterial(
      secret_string=response.get('SecretString'),
      secret_binary=response.get('SecretBinary'),
      version_id=response.get('VersionId'),
      version_stages=response.get('VersionStages'),
      created_date=response.get('CreatedDate'))

  @staticmethod
  def from_value(value:Any):
    """
    Accepts what a secret generator hands back.
    """
    if isinstance(value, SecretMaterial):
      return value
    if isinstance(value, str):
      return SecretMaterial(secret_string=value)
    if isinstance(value, (bytes, bytearray)):
      return SecretMaterial(secret_binary=bytes(value))
    if isinstance(value, Mapping):
      return SecretMaterial(
        secret_string=value.get('SecretString'),
        secret_binary=value.get('SecretBinary'))
    raise TypeError('Unable to use {} as secret material'.format(type(value).__name__))

  @property
  def secret_string(self)->Optional[str]:
    return self.__secret_string

  @property
  def secret_binary(self)->Optional[bytes]:
    return self.__secret_binary

  @property
  def version_id(self)->Optional[str]:
    return self.__version_id

  @property
  def version_stages(self)->FrozenSet[str]:
    return self.__version_stages

  @property
  def created_date(self)->Optional[datetime]:
    return self.__created_date

  @property
  def is_empty(self)->bool:
    return self.secret_string is None and self.secret_binary is None

  def has_stage(self, stage:VersionStage)->bool:
    return stage.value in self.version_stages

  def as_request(self)->Mapping[str,Any]:
    """
    Renders the payload as PutSecretValue arguments.
    """
    if self.is_empty:
      raise ValueError('Secret material has neither SecretString nor SecretBinary')

    result = {}
    if self.secret_binary is not None:
      result['SecretBinary'] = self.secret_binary
    if self.secret_string is not None:
      result['SecretString'] = self.secret_string
    return result

  def json(self)->Any:
    if self.secret_string is None:
      raise ValueError('Secret version {} has no SecretString'.format(self.version_id))
    return loads(self.secret_string)

  def __eq__(self, other) -> bool:
    if not isinstance(other, SecretMaterial):
      return NotImplemented
    return self.secret_string == other.secret_string and self.secret_binary == other.secret_binary

  def __repr__(self) -> str:
    # Never render the payload
    return 'SecretMaterial(version_id={}, stages={})'.format(
      self.version_id,
      sorted(self.version_stages))

class StagingSnapshot:
  """
  Represents the staging labels of a secret at the time it was described.
  """
  def __init__(self, secret_id:str, rotation_enabled:bool, versions_to_stages:Mapping[str,list]=None) -> None:
    self.__secret_id = secret_id
    self.__rotation_enabled = bool(rotation_enabled)
    if versions_to_stages is None:
      self.__versions_to_stages = None
    else:
      self.__versions_to_stages = {
        version_id: frozenset(stages) for version_id, stages in versions_to_stages.items()
      }

  @staticmethod
  def from_response(response:Mapping[str,Any]):
    """
    Reads a DescribeSecret response.
    """
    return StagingSnapshot(
      secret_id=response.get('ARN', response.get('Name')),
      rotation_enabled=response.get('RotationEnabled', False),
      versions_to_stages=response.get('VersionIdsToStages'))

  @property
  def secret_id(self)->str:
    return self.__secret_id

  @property
  def rotation_enabled(self)->bool:
    return self.__rotation_enabled

  @property
  def versions_to_stages(self)->Optional[Mapping[str,FrozenSet[str]]]:
    return self.__versions_to_stages

  def has_version(self, version_id:str)->bool:
    return self.versions_to_stages is not None and version_id in self.versions_to_stages

  def stages_of(self, version_id:str)->FrozenSet[str]:
    if not self.has_version(version_id):
      return frozenset()
    return self.versions_to_stages[version_id]

  def has_stage(self, version_id:str, stage:VersionStage)->bool:
    return stage.value in self.stages_of(version_id)

  def version_with(self, stage:VersionStage)->Optional[str]:
    if self.versions_to_stages is None:
      return None
    for version_id, stages in self.versions_to_stages.items():
      if stage.value in stages:
        return version_id
    return None

class StepResult:
  """
  Represents the outcome of one rotation step.
  """
  def __init__(self, step:RotationStep, status:StepStatus, message:str, material:SecretMaterial=None, residual_pending:bool=False) -> None:
    self.step = step
    self.status = status
    self.message = message
    self.material = material
    self.residual_pending = residual_pending

  def as_dict(self)->Mapping[str,Any]:
    result = {
      'Step': str(self.step),
      'Status': self.status.value,
      'Message': self.message,
    }

    if self.material is not None and self.material.version_id is not None:
      result['VersionId'] = self.material.version_id

    if self.residual_pending:
      result['ResidualPending'] = True

    return result

  def __str__(self) -> str:
    return '{}: [{}] {}'.format(self.step, self.status.value, self.message)
