from functools import lru_cache
from typing import Dict

from eyeexam.config import settings
from eyeexam.services.emr_client import EmrClient, EmrClientConfig
from eyeexam.services.repository import SubRecordRepository, build_repositories


@lru_cache(maxsize=1)
def get_client() -> EmrClient:
    return EmrClient()


@lru_cache(maxsize=1)
def get_patient_client() -> EmrClient:
    return EmrClient(EmrClientConfig(base_url=settings.patient_api_url))


def get_repositories() -> Dict[str, SubRecordRepository]:
    return build_repositories(get_client())
