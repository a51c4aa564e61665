import asyncio
import base64

import pytest

from kitlock.domain.image.model.image import ProjectImage, VendorOverride
from kitlock.domain.image.model.locked import LockedImage
from kitlock.domain.image.model.metadata import KIT_METADATA_LABEL
from kitlock.domain.image.service.resolver import ImageResolver, calculate_digest
from kitlock.domain.shared.error import (
    ImageReferenceError,
    ImageToolError,
    KitMetadataNotFoundError,
    MetadataDecodeError,
    MetadataMismatchError,
    NotFoundError,
)
from kitlock.domain.shared.model.artifact import ValidIdentifier

SOURCE = "public.ecr.aws/bottlerocket/core-kit:v2.0.0"
REPO = "public.ecr.aws/bottlerocket/core-kit"


@pytest.fixture
def three_arch(fake_image_tool, manifest_list, metadata_factory, kit_labels):
    """Image tool serving a three-architecture kit with consistent metadata."""
    raw = manifest_list([("sha256:a", "amd64"), ("sha256:b", "arm64"), ("sha256:c", "arm")])
    labels = kit_labels(metadata_factory())
    tool = fake_image_tool(
        manifests={SOURCE: raw},
        labels={f"{REPO}@sha256:{d}": labels for d in "abc"},
    )
    return tool, raw


class TestResolve:
    @pytest.mark.asyncio
    async def test_resolves_kit(self, project_image, three_arch, metadata_factory):
        tool, raw = three_arch

        locked, metadata = await ImageResolver.from_image(project_image).resolve(tool)

        assert locked.digest == calculate_digest(raw)
        assert locked.source == SOURCE
        assert str(locked.name) == "core-kit"
        assert str(locked.vendor) == "bottlerocket"
        assert str(locked.version) == "2.0.0"
        assert metadata == metadata_factory()
        assert tool.calls_of("manifest") == [SOURCE]
        assert tool.calls_of("config") == [f"{REPO}@sha256:a", f"{REPO}@sha256:b", f"{REPO}@sha256:c"]

    @pytest.mark.asyncio
    async def test_mismatch_fails(
        self, project_image, fake_image_tool, manifest_list, metadata_factory, kit_labels
    ):
        tool = fake_image_tool(
            manifests={SOURCE: manifest_list([("sha256:a", "amd64"), ("sha256:b", "arm64"), ("sha256:c", "arm")])},
            labels={
                f"{REPO}@sha256:a": kit_labels(metadata_factory()),
                f"{REPO}@sha256:b": kit_labels(metadata_factory()),
                f"{REPO}@sha256:c": kit_labels(metadata_factory(sdk_version="0.44.0")),
            },
        )

        with pytest.raises(MetadataMismatchError) as exc_info:
            await ImageResolver.from_image(project_image).resolve(tool)

        assert "sha256:c" in str(exc_info.value)
        assert any("digest-computed" in note for note in exc_info.value.__notes__)

    @pytest.mark.asyncio
    async def test_equal_metadata_with_different_encoding(
        self, project_image, fake_image_tool, manifest_list, kit_labels, metadata_factory
    ):
        canonical = kit_labels(metadata_factory())
        payload = metadata_factory().model_dump_json(by_alias=True, indent=2)
        reformatted = {KIT_METADATA_LABEL: base64.b64encode(payload.encode()).decode()}
        assert canonical != reformatted
        tool = fake_image_tool(
            manifests={SOURCE: manifest_list([("sha256:a", "amd64"), ("sha256:b", "arm64")])},
            labels={f"{REPO}@sha256:a": canonical, f"{REPO}@sha256:b": reformatted},
        )

        _, metadata = await ImageResolver.from_image(project_image).resolve(tool)

        assert metadata == metadata_factory()

    @pytest.mark.asyncio
    async def test_canonical_decode_failure_is_fatal(
        self, project_image, fake_image_tool, manifest_list, kit_labels, metadata_factory
    ):
        tool = fake_image_tool(
            manifests={SOURCE: manifest_list([("sha256:a", "amd64"), ("sha256:b", "arm64")])},
            labels={
                f"{REPO}@sha256:a": {KIT_METADATA_LABEL: "!!!"},
                f"{REPO}@sha256:b": kit_labels(metadata_factory()),
            },
        )

        with pytest.raises(MetadataDecodeError):
            await ImageResolver.from_image(project_image).resolve(tool)

        assert tool.calls_of("config") == [f"{REPO}@sha256:a"]

    @pytest.mark.asyncio
    async def test_later_decode_failure_is_fatal(
        self, project_image, fake_image_tool, manifest_list, kit_labels, metadata_factory
    ):
        tool = fake_image_tool(
            manifests={SOURCE: manifest_list([("sha256:a", "amd64"), ("sha256:b", "arm64")])},
            labels={
                f"{REPO}@sha256:a": kit_labels(metadata_factory()),
                f"{REPO}@sha256:b": {KIT_METADATA_LABEL: "e30K"},
            },
        )

        with pytest.raises(MetadataDecodeError) as exc_info:
            await ImageResolver.from_image(project_image).resolve(tool)

        assert exc_info.value.stage == "json"

    @pytest.mark.asyncio
    async def test_missing_label_is_not_found(self, project_image, fake_image_tool, manifest_list):
        tool = fake_image_tool(
            manifests={SOURCE: manifest_list([("sha256:a", "amd64")])},
            labels={f"{REPO}@sha256:a": {}},
        )

        with pytest.raises(NotFoundError):
            await ImageResolver.from_image(project_image).resolve(tool)

    @pytest.mark.asyncio
    async def test_empty_manifest_list(self, project_image, fake_image_tool, manifest_list):
        tool = fake_image_tool(manifests={SOURCE: manifest_list([])})

        with pytest.raises(KitMetadataNotFoundError):
            await ImageResolver.from_image(project_image).resolve(tool)

        assert tool.calls_of("config") == []

    @pytest.mark.asyncio
    async def test_skip_metadata(self, project_image, three_arch):
        tool, raw = three_arch

        locked, metadata = await ImageResolver.from_image(project_image).skip_metadata_retrieval().resolve(tool)

        assert metadata is None
        assert locked.digest == calculate_digest(raw)
        assert tool.calls_of("config") == []

    @pytest.mark.asyncio
    async def test_skip_metadata_returns_copy(self, project_image):
        resolver = ImageResolver.from_image(project_image)
        skipping = resolver.skip_metadata_retrieval()
        assert skipping.skip_metadata
        assert not resolver.skip_metadata

    @pytest.mark.asyncio
    async def test_resolve_locked_image(self, project_image, three_arch):
        tool, raw = three_arch

        locked = await ImageResolver.from_image(project_image).resolve_locked_image(tool)

        assert isinstance(locked, LockedImage)
        assert locked.digest == calculate_digest(raw)
        assert tool.calls_of("config") == []

    @pytest.mark.asyncio
    async def test_missing_registry_fails_before_fetch(self, project_image, fake_image_tool):
        image = project_image.model_copy(update={"vendor": project_image.vendor.model_copy(update={"registry": ""})})
        tool = fake_image_tool()

        with pytest.raises(ImageReferenceError):
            await ImageResolver.from_image(image).resolve(tool)

        assert tool.calls == []

    @pytest.mark.asyncio
    async def test_override_changes_query_not_source(
        self, project_image, fake_image_tool, manifest_list, kit_labels, metadata_factory
    ):
        image = ProjectImage(
            image=project_image.image,
            vendor=project_image.vendor,
            override=VendorOverride(registry="localhost:5000", name=ValidIdentifier("my-core-kit")),
        )
        tool = fake_image_tool(
            manifests={"localhost:5000/my-core-kit:v2.0.0": manifest_list([("sha256:a", "amd64")])},
            labels={"localhost:5000/my-core-kit@sha256:a": kit_labels(metadata_factory())},
        )

        locked, _ = await ImageResolver.from_image(image).resolve(tool)

        assert locked.source == SOURCE
        assert tool.calls_of("manifest") == ["localhost:5000/my-core-kit:v2.0.0"]

    @pytest.mark.asyncio
    async def test_transport_error_carries_context(self, project_image, fake_image_tool):
        tool = fake_image_tool()

        with pytest.raises(ImageToolError) as exc_info:
            await ImageResolver.from_image(project_image).resolve(tool)

        assert any("resolution" in note and "'start'" in note for note in exc_info.value.__notes__)

    @pytest.mark.asyncio
    async def test_fetches_metadata_one_at_a_time(
        self, project_image, fake_image_tool, manifest_list, kit_labels, metadata_factory
    ):
        class CountingImageTool(fake_image_tool):
            in_flight = 0
            max_in_flight = 0

            async def get_config(self, image_uri):
                CountingImageTool.in_flight += 1
                CountingImageTool.max_in_flight = max(CountingImageTool.max_in_flight, self.in_flight)
                await asyncio.sleep(0)
                try:
                    return await super().get_config(image_uri)
                finally:
                    CountingImageTool.in_flight -= 1

        digests = [f"sha256:{i}" for i in range(5)]
        tool = CountingImageTool(
            manifests={SOURCE: manifest_list([(d, "amd64") for d in digests])},
            labels={f"{REPO}@{d}": kit_labels(metadata_factory()) for d in digests},
        )

        await ImageResolver.from_image(project_image).resolve(tool)

        assert CountingImageTool.max_in_flight == 1
        assert tool.calls_of("config") == [f"{REPO}@{d}" for d in digests]


class TestCalculateDigest:
    def test_empty_input(self):
        assert calculate_digest(b"") == "47DEQpj8HBSa+/TImW+5JCeuQeRkm5NMpJWZG3hSuFU="

    def test_depends_only_on_bytes(self, manifest_list):
        raw = manifest_list([("sha256:a", "amd64")])
        assert calculate_digest(raw) == calculate_digest(bytes(raw))
        assert calculate_digest(raw) != calculate_digest(raw + b"\n")
