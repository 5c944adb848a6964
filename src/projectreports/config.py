from __future__ import annotations

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, cast

import yaml

from .errors import ConfigError

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_SKIP_COLUMNS = ("Done", "Complete")
LAST_UPDATED_SCHEMES = ("LastCommentPattern", "LastUpdated")


def _resolve_env_var(value: Any, env_var_name: str | None = None) -> Any:
    """Resolve environment variable if value starts with $."""
    if isinstance(value, str) and value.startswith('$'):
        env_name = env_var_name or value[1:]
        return os.getenv(env_name, value)
    return value


def _section(raw: Mapping[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name, {}) or {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"'{name}' section must be a mapping")
    return dict(value)


def _str_list(value: Any, key: str) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, (list, tuple)):
        raise ConfigError(f"'{key}' must be a list of strings")
    return [str(v) for v in value]


def _flag(value: Any, key: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"'{key}' must be true or false, got {value!r}")
    return value


def _regex(value: Any, key: str) -> str:
    text = str(value)
    try:
        re.compile(text)
    except re.error as exc:
        raise ConfigError(f"'{key}' is not a valid regular expression: {exc}") from exc
    return text


@dataclass
class LabelerConfig:
    process_with_label: str = 'feature'
    column_label_prefix: str = '> '
    linked_label_prefix: str = '>> '
    label_color: str = 'FFFFFF'
    skip_columns: list[str] = field(default_factory=lambda: list(DEFAULT_SKIP_COLUMNS))
    # false means preview only: planned changes are logged, nothing is written
    write_labels: bool = False

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> LabelerConfig:
        data = data or {}
        defaults = cls()
        skip = data.get('skip-columns', defaults.skip_columns)
        return cls(
            process_with_label=str(data.get('process-with-label', defaults.process_with_label)),
            column_label_prefix=str(data.get('column-label-prefix', defaults.column_label_prefix)),
            linked_label_prefix=str(data.get('linked-label-prefix', defaults.linked_label_prefix)),
            label_color=str(data.get('label-color', defaults.label_color)).lstrip('#'),
            skip_columns=_str_list(skip, 'skip-columns'),
            write_labels=_flag(data.get('write-labels', defaults.write_labels), 'write-labels'),
        )


@dataclass
class InProgressConfig:
    report_on: str = 'Epic'
    in_progress_columns: list[str] = field(default_factory=lambda: ['In Progress'])
    status_label_match: str = r'(?<=status:).*'
    wip_label_match: str = r'(\d+)-wip'
    last_updated_days_flag: float = 3.0
    last_updated_scheme: str = 'LastCommentPattern'
    last_updated_scheme_data: str = r'^(#){1,4} [Uu]pdate'
    target_date_comment_field: str = 'target date'

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> InProgressConfig:
        data = data or {}
        d = cls()
        scheme = str(data.get('last-updated-scheme', d.last_updated_scheme))
        if scheme not in LAST_UPDATED_SCHEMES:
            raise ConfigError(
                f"Unknown last-updated-scheme '{scheme}' (expected one of {', '.join(LAST_UPDATED_SCHEMES)})"
            )
        try:
            days_flag = float(data.get('last-updated-days-flag', d.last_updated_days_flag))
        except (TypeError, ValueError) as exc:
            raise ConfigError("'last-updated-days-flag' must be a number") from exc
        return cls(
            report_on=str(data.get('report-on', data.get('report-on-label', d.report_on))),
            in_progress_columns=_str_list(
                data.get('in-progress-columns', d.in_progress_columns), 'in-progress-columns'
            ),
            status_label_match=_regex(
                data.get('status-label-match', d.status_label_match), 'status-label-match'
            ),
            wip_label_match=_regex(data.get('wip-label-match', d.wip_label_match), 'wip-label-match'),
            last_updated_days_flag=days_flag,
            last_updated_scheme=scheme,
            last_updated_scheme_data=_regex(
                data.get('last-updated-scheme-data', d.last_updated_scheme_data),
                'last-updated-scheme-data',
            ),
            target_date_comment_field=str(
                data.get('target-date-comment-field', d.target_date_comment_field)
            ),
        )


@dataclass
class AppConfig:
    source_file: Path | None
    github_token: str | None
    github_api_url: str
    logging_json_enabled: bool
    logging_level: str
    labeler: LabelerConfig
    in_progress: InProgressConfig


def build_config(raw: Mapping[str, Any] | None, source_file: Path | None = None) -> AppConfig:
    raw = raw or {}
    gh = _section(raw, 'github')
    logging_config = _section(raw, 'logging')
    token = _resolve_env_var(gh.get('token'), None)
    if token is None:
        token = os.getenv('GITHUB_TOKEN')
    if isinstance(token, str) and token.startswith('$'):
        token = None
    return AppConfig(
        source_file=source_file,
        github_token=token,
        github_api_url=str(gh.get('api_url', DEFAULT_API_URL)),
        logging_json_enabled=_flag(logging_config.get('json_enabled', False), 'json_enabled'),
        logging_level=str(logging_config.get('level', 'INFO')),
        labeler=LabelerConfig.from_mapping(_section(raw, 'labeler')),
        in_progress=InProgressConfig.from_mapping(_section(raw, 'in-progress')),
    )


def load_config(path: str | Path | None) -> AppConfig:
    if path is None:
        return build_config({})
    p = Path(path)
    if not p.exists():
        raise ConfigError(f'Configuration file not found: {p}')
    try:
        raw = cast(Any, yaml.safe_load(p.read_text(encoding='utf-8')) or {})
    except yaml.YAMLError as exc:
        raise ConfigError(f'Invalid YAML in {p}: {exc}') from exc
    if not isinstance(raw, Mapping):
        raise ConfigError(f'Configuration root in {p} must be a mapping')
    return build_config(raw, source_file=p)


__all__ = [
    'AppConfig',
    'ConfigError',
    'InProgressConfig',
    'LabelerConfig',
    'build_config',
    'load_config',
]
