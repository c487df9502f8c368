"""
Shared fixtures for the rotation tests.
"""

import os

# X-Ray has no segment outside of Lambda
os.environ.setdefault("AWS_XRAY_SDK_ENABLED", "false")
os.environ.setdefault("AWS_XRAY_CONTEXT_MISSING", "IGNORE_ERROR")
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-2")

import pytest

from secret_rotation.lib.enums import RotationStep, VersionStage
from secret_rotation.lib.exceptions import RemoteError, RemoteNotFound
from secret_rotation.lib.interface import RotationRequest, SecretMaterial, StagingSnapshot
from secret_rotation.lib.secret_store import SecretStore

SECRET_ID = "arn:aws:secretsmanager:us-east-2:123456789012:secret:app-db"
OLD_VERSION = "version-id-old"
NEW_VERSION = "version-id-new"

MUTATING_CALLS = ("put_value", "move_stage")


class FakeSecretStore(SecretStore):
    """In-memory secret store that records every call.

    ``pending_lag`` makes that many AWSPENDING reads miss after each put, the
    way a freshly staged label may not be visible right away.
    """

    def __init__(self, rotation_enabled=True, versions=None, pending_lag=0):
        self.rotation_enabled = rotation_enabled
        self.versions = {}
        self.materials = {}
        self.pending_lag = pending_lag
        self.lag_remaining = 0
        self.calls = []
        self.failures = {}
        self.describe_versions = True
        for version_id, (material, stages) in (versions or {}).items():
            self.versions[version_id] = set(stage.value for stage in stages)
            self.materials[version_id] = SecretMaterial.from_value(material)

    def fail(self, method, error, on_call=1):
        """Raise ``error`` on the n-th call of ``method``."""
        self.failures[(method, on_call)] = error

    def _record(self, method, *args):
        self.calls.append((method,) + args)
        count = len([c for c in self.calls if c[0] == method])
        error = self.failures.get((method, count))
        if error is not None:
            raise error

    @property
    def mutations(self):
        return [call for call in self.calls if call[0] in MUTATING_CALLS]

    def holder_of(self, stage):
        for version_id, stages in self.versions.items():
            if stage.value in stages:
                return version_id
        return None

    def _material(self, version_id):
        material = self.materials[version_id]
        return SecretMaterial(
            secret_string=material.secret_string,
            secret_binary=material.secret_binary,
            version_id=version_id,
            version_stages=sorted(self.versions[version_id]),
        )

    async def describe(self, secret_id):
        self._record("describe", secret_id)
        mapping = None
        if self.describe_versions:
            mapping = {v: sorted(s) for v, s in self.versions.items()}
        return StagingSnapshot(secret_id, self.rotation_enabled, mapping)

    async def get_value(self, secret_id, version_id=None, version_stage=None):
        self._record("get_value", secret_id, version_id, version_stage)
        if version_stage is VersionStage.PENDING and self.lag_remaining > 0:
            self.lag_remaining -= 1
            raise RemoteNotFound("Secrets Manager can't find the specified secret value for staging label: AWSPENDING",
                                 code="ResourceNotFoundException")

        if version_id is None:
            version_id = self.holder_of(version_stage)
        if version_id is None or version_id not in self.versions:
            raise RemoteNotFound("Secrets Manager can't find the specified secret value",
                                 code="ResourceNotFoundException")
        if version_stage is not None and version_stage.value not in self.versions[version_id]:
            raise RemoteNotFound("Secrets Manager can't find the specified secret value",
                                 code="ResourceNotFoundException")
        return self._material(version_id)

    async def put_value(self, secret_id, version_id, material, stages):
        self._record("put_value", secret_id, version_id, material, [stage for stage in stages])
        for stage in stages:
            holder = self.holder_of(stage)
            if holder is not None:
                self.versions[holder].discard(stage.value)
        self.versions[version_id] = set(stage.value for stage in stages)
        self.materials[version_id] = material
        self.lag_remaining = self.pending_lag

    async def move_stage(self, secret_id, stage, move_to_version_id=None, remove_from_version_id=None):
        self._record("move_stage", secret_id, stage, move_to_version_id, remove_from_version_id)
        if remove_from_version_id is not None:
            self.versions[remove_from_version_id].discard(stage.value)
        if move_to_version_id is not None:
            holder = self.holder_of(stage)
            if holder is not None:
                raise RemoteError("{} is attached to {}".format(stage.value, holder),
                                  code="InvalidParameterException")
            self.versions[move_to_version_id].add(stage.value)
            if stage is VersionStage.CURRENT and remove_from_version_id is not None:
                for stages in self.versions.values():
                    stages.discard(VersionStage.PREVIOUS.value)
                self.versions[remove_from_version_id].add(VersionStage.PREVIOUS.value)

    async def random_password(self, length=32, exclude_characters=None, exclude_punctuation=False):
        self._record("random_password", length)
        return "p" * length


def make_request(step, token=NEW_VERSION, secret_id=SECRET_ID):
    return RotationRequest(step=step, secret_id=secret_id, client_request_token=token)


@pytest.fixture
def store():
    """Store with a current version and a freshly staged pending version."""
    return FakeSecretStore(versions={
        OLD_VERSION: ({"SecretString": "old-password"}, [VersionStage.CURRENT]),
        NEW_VERSION: ({"SecretString": "new-password"}, [VersionStage.PENDING]),
    })


@pytest.fixture
def fresh_store():
    """Store where rotation started but createSecret has not stored anything.

    Secrets Manager lists the token as AWSPENDING before the value exists.
    """
    store = FakeSecretStore(versions={
        OLD_VERSION: ({"SecretString": "old-password"}, [VersionStage.CURRENT]),
    })
    original = store.describe

    async def describe(secret_id):
        snapshot = await original(secret_id)
        mapping = dict(snapshot.versions_to_stages)
        mapping.setdefault(NEW_VERSION, frozenset([VersionStage.PENDING.value]))
        return StagingSnapshot(secret_id, snapshot.rotation_enabled, mapping)

    store.describe = describe
    return store


@pytest.fixture
def create_request():
    return make_request(RotationStep.CREATE_SECRET)
