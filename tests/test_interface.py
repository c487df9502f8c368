"""Tests for the request, material and snapshot value types."""

import pytest

from secret_rotation.lib.enums import RotationStep, StepStatus, VersionStage
from secret_rotation.lib.exceptions import InvalidRotationEvent
from secret_rotation.lib.interface import RotationRequest, SecretMaterial, StagingSnapshot, StepResult


class TestRotationRequest:
    """Test parsing of the Lambda rotation event."""

    def test_from_event(self):
        request = RotationRequest.from_event({
            "Step": "createSecret",
            "SecretId": "arn:1",
            "ClientRequestToken": "v2",
        })

        assert request.step == RotationStep.CREATE_SECRET
        assert request.secret_id == "arn:1"
        assert request.client_request_token == "v2"

    @pytest.mark.parametrize("verb", ["FINISHSECRET", "finishsecret", "finishSecret"])
    def test_step_ignores_case(self, verb):
        request = RotationRequest.from_event({"Step": verb, "SecretId": "arn:1", "ClientRequestToken": "v2"})

        assert request.step == RotationStep.FINISH_SECRET

    def test_unknown_step(self):
        with pytest.raises(InvalidRotationEvent):
            RotationRequest.from_event({"Step": "rollbackSecret", "SecretId": "arn:1", "ClientRequestToken": "v2"})

    @pytest.mark.parametrize("missing", ["Step", "SecretId", "ClientRequestToken"])
    def test_missing_field(self, missing):
        event = {"Step": "setSecret", "SecretId": "arn:1", "ClientRequestToken": "v2"}
        del event[missing]

        with pytest.raises(InvalidRotationEvent) as info:
            RotationRequest.from_event(event)

        assert isinstance(info.value, ValueError)
        assert missing in str(info.value)

    def test_step_is_read_only(self):
        request = RotationRequest(RotationStep.SET_SECRET, "arn:1", "v2")

        with pytest.raises(AttributeError):
            request.step = RotationStep.FINISH_SECRET

    def test_empty_token(self):
        with pytest.raises(InvalidRotationEvent):
            RotationRequest(RotationStep.SET_SECRET, "arn:1", "")


class TestSecretMaterial:
    """Test SecretMaterial conversions."""

    def test_from_mapping(self):
        material = SecretMaterial.from_value({"SecretString": "s"})

        assert material.as_request() == {"SecretString": "s"}

    def test_from_bytes(self):
        material = SecretMaterial.from_value(bytearray(b"\x00"))

        assert material.as_request() == {"SecretBinary": b"\x00"}

    def test_from_unsupported_value(self):
        with pytest.raises(TypeError):
            SecretMaterial.from_value(42)

    def test_empty_material_cannot_be_stored(self):
        with pytest.raises(ValueError):
            SecretMaterial().as_request()

    def test_repr_hides_payload(self):
        material = SecretMaterial(secret_string="hunter2", version_id="v2", version_stages=["AWSPENDING"])

        assert "hunter2" not in repr(material)
        assert "v2" in repr(material)

    def test_json_requires_string(self):
        with pytest.raises(ValueError):
            SecretMaterial(secret_binary=b"{}").json()


class TestStagingSnapshot:
    """Test label lookups on a described secret."""

    def test_lookups(self):
        snapshot = StagingSnapshot("arn:1", True, {
            "v1": ["AWSCURRENT", "custom-label"],
            "v2": ["AWSPENDING"],
        })

        assert snapshot.has_stage("v1", VersionStage.CURRENT)
        assert not snapshot.has_stage("v2", VersionStage.CURRENT)
        assert snapshot.stages_of("v1") == frozenset(["AWSCURRENT", "custom-label"])
        assert snapshot.stages_of("v9") == frozenset()
        assert snapshot.version_with(VersionStage.PENDING) == "v2"
        assert snapshot.version_with(VersionStage.PREVIOUS) is None

    def test_without_mapping(self):
        snapshot = StagingSnapshot("arn:1", True, None)

        assert snapshot.versions_to_stages is None
        assert not snapshot.has_version("v1")
        assert snapshot.version_with(VersionStage.CURRENT) is None


class TestStepResult:
    """Test the Lambda-facing rendering of a step result."""

    def test_as_dict_omits_payload(self):
        result = StepResult(
            RotationStep.SET_SECRET,
            StepStatus.APPLIED,
            "Applied version v2 of secret arn:1.",
            material=SecretMaterial(secret_string="hunter2", version_id="v2"),
        )

        assert result.as_dict() == {
            "Step": "setSecret",
            "Status": "APPLIED",
            "Message": "Applied version v2 of secret arn:1.",
            "VersionId": "v2",
        }
