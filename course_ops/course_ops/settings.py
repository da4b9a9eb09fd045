from __future__ import annotations

from pathlib import Path

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import BuildLayout, StorageLocation


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="COURSE_", case_sensitive=False, populate_by_name=True
    )

    aws_access_key_id: SecretStr | None = Field(
        default=None, validation_alias=AliasChoices("AWS_ACCESS_KEY_ID")
    )
    aws_secret_access_key: SecretStr | None = Field(
        default=None, validation_alias=AliasChoices("AWS_SECRET_ACCESS_KEY")
    )
    aws_region: str | None = Field(
        default=None, validation_alias=AliasChoices("AWS_REGION")
    )
    s3_endpoint_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("AWS_S3_ENDPOINT", "COURSE_S3_ENDPOINT_URL"),
    )

    workspace_dir: Path = Path("_workspace")
    build_dir: Path | None = Field(
        default=None, validation_alias=AliasChoices("BUILD_DIR", "COURSE_BUILD_DIR")
    )
    source_dir: Path = Path("course_files")
    cache_dir_name: str = "_bookdown_files"

    bucket: str = "singlecellcourse"
    data_prefix: str = "data/"
    cache_prefix: str = "_bookdown_files/"
    website_prefix: str = "website/"

    entry_document: str = "index.Rmd"
    output_format: str = "bookdown::gitbook"
    rscript: str = "Rscript"
    aws_cli: str = "aws"

    def layout(self) -> BuildLayout:
        workspace = self.workspace_dir.resolve()
        build = (self.build_dir or workspace / "build").resolve()
        return BuildLayout(
            workspace=workspace,
            build=build,
            data=build / "data",
            cache=build / self.cache_dir_name,
        )

    def location(self, prefix: str) -> StorageLocation:
        return StorageLocation(bucket=self.bucket, prefix=prefix)

    def secret_values(self) -> list[str]:
        return [
            secret.get_secret_value()
            for secret in (self.aws_access_key_id, self.aws_secret_access_key)
            if secret is not None
        ]

    def aws_environment(self, base: dict[str, str]) -> dict[str, str]:
        """Environment for the aws CLI: base plus the configured credentials."""
        env = dict(base)
        if self.aws_access_key_id is not None:
            env["AWS_ACCESS_KEY_ID"] = self.aws_access_key_id.get_secret_value()
        if self.aws_secret_access_key is not None:
            env["AWS_SECRET_ACCESS_KEY"] = (
                self.aws_secret_access_key.get_secret_value()
            )
        if self.aws_region:
            env["AWS_REGION"] = self.aws_region
            env["AWS_DEFAULT_REGION"] = self.aws_region
        return env
