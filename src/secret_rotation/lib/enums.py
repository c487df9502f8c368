from enum import Enum

class RotationStep(Enum):
  CREATE_SECRET='createSecret'
  SET_SECRET='setSecret'
  TEST_SECRET='testSecret'
  FINISH_SECRET='finishSecret'

  @staticmethod
  def parse(value:str):
    """
    Resolves the Step verb of a rotation event, ignoring case.
    """
    for step in RotationStep:
      if step.value.upper() == str(value).upper():
        return step
    raise ValueError('Unknown rotation step: {}'.format(value))

  def __str__(self) -> str:
    return self.value

class VersionStage(Enum):
  CURRENT='AWSCURRENT'
  PENDING='AWSPENDING'
  PREVIOUS='AWSPREVIOUS'

  def __str__(self) -> str:
    return self.value

class Eligibility(Enum):
  READY='READY'
  ALREADY_ROTATED='ALREADY_ROTATED'

class StepStatus(Enum):
  CREATED='CREATED'
  ALREADY_CREATED='ALREADY_CREATED'
  APPLIED='APPLIED'
  TESTED='TESTED'
  FINISHED='FINISHED'
  ALREADY_FINISHED='ALREADY_FINISHED'
  ALREADY_ROTATED='ALREADY_ROTATED'
  REVOKED='REVOKED'

  @property
  def is_noop(self)->bool:
    return self in [
      StepStatus.ALREADY_CREATED,
      StepStatus.ALREADY_FINISHED,
      StepStatus.ALREADY_ROTATED,
    ]
