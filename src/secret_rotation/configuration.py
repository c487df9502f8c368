from os import environ
from typing import Any, Mapping

class Configuration:
  """
  Represents the settings of the rotation function.
  """
  def __init__(self, region_name:str=None, endpoint_url:str=None, poll_interval:float=1.0, max_wait:float=None, timeout_margin:float=5.0, log_level:str='INFO'):
    self.region_name = region_name
    self.endpoint_url = endpoint_url
    self.poll_interval = poll_interval
    self.max_wait = max_wait
    self.timeout_margin = timeout_margin
    self.log_level = log_level

  def __str__(self):
    return "Config:[{} poll={}s max_wait={} margin={}s]".format(
      self.region_name,
      self.poll_interval,
      self.max_wait,
      self.timeout_margin)

  @property
  def region_name(self)->str:
    return self.__region_name

  @region_name.setter
  def region_name(self, value)->None:
    self.__region_name = value or None

  @property
  def endpoint_url(self)->str:
    return self.__endpoint_url

  @endpoint_url.setter
  def endpoint_url(self, value)->None:
    self.__endpoint_url = value or None

  @property
  def poll_interval(self)->float:
    return self.__poll_interval

  @poll_interval.setter
  def poll_interval(self, value)->None:
    self.__poll_interval = Configuration.__as_seconds('PENDING_POLL_INTERVAL', value)

  @property
  def max_wait(self)->float:
    return self.__max_wait

  @max_wait.setter
  def max_wait(self, value)->None:
    if value is None or value == '':
      self.__max_wait = None
    else:
      self.__max_wait = Configuration.__as_seconds('PENDING_MAX_WAIT', value)

  @property
  def timeout_margin(self)->float:
    return self.__timeout_margin

  @timeout_margin.setter
  def timeout_margin(self, value)->None:
    self.__timeout_margin = Configuration.__as_seconds('TIMEOUT_MARGIN_SECONDS', value)

  @property
  def log_level(self)->str:
    return self.__log_level

  @log_level.setter
  def log_level(self, value)->None:
    self.__log_level = str(value or 'INFO').upper()

  @staticmethod
  def __as_seconds(name:str, value)->float:
    try:
      seconds = float(value)
    except (TypeError, ValueError):
      raise ValueError('InvalidValue: '+name)
    if seconds < 0:
      raise ValueError('InvalidValue: '+name)
    return seconds

  @staticmethod
  def from_environment():
    return Configuration.from_request(environ)

  @staticmethod
  def from_request(request:Mapping[str,Any]):
    result = Configuration()
    result.region_name = request.get('REGION', request.get('AWS_REGION'))
    result.endpoint_url = request.get('SECRETS_MANAGER_ENDPOINT')
    result.poll_interval = request.get('PENDING_POLL_INTERVAL', 1.0)
    result.max_wait = request.get('PENDING_MAX_WAIT')
    result.timeout_margin = request.get('TIMEOUT_MARGIN_SECONDS', 5.0)
    result.log_level = request.get('LOG_LEVEL', 'INFO')
    return result
