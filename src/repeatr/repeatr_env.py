from pathlib import Path
import os
import tomllib
from pydantic import BaseModel, Field, ValidationError
from typing import Optional
from jinja2 import Template


# ─── Config Schema ─────────────────────────────────────────────────
class EngineConfig(BaseModel):
    max_year: int = Field(9999, ge=1, le=9999)
    week_start: str = Field("MO", pattern="^(MO|TU|WE|TH|FR|SA|SU)$")
    exclusion_window_ms: int = Field(1, ge=0)
    cache: bool = True


class TextConfig(BaseModel):
    approximate_marker: str = "(approximate)"


class OutputConfig(BaseModel):
    count: int = Field(10, ge=1)
    timezone: str = "local"


class RepeatrConfig(BaseModel):
    title: str = "Repeatr Configuration"
    engine: EngineConfig = EngineConfig()
    text: TextConfig = TextConfig()
    output: OutputConfig = OutputConfig()


# ─── Commented Template ────────────────────────────────────
CONFIG_TEMPLATE = """\
title = "{{ title }}"

[engine]
# max_year: int = 1 ... 9999
# Iteration stops once a rule's clock moves past this year.
max_year = {{ engine.max_year }}

# week_start: str = 'MO' | 'TU' | 'WE' | 'TH' | 'FR' | 'SA' | 'SU'
# Used when a rule does not give its own WKST.
week_start = "{{ engine.week_start }}"

# exclusion_window_ms: int >= 0
# Half-width of the window used to evaluate exclusion rules around
# each candidate occurrence of a rule set.
exclusion_window_ms = {{ engine.exclusion_window_ms }}

# cache: bool = true | false
# Remember query results for the lifetime of a rule.
cache = {{ engine.cache | lower }}

[text]
# Appended to natural-language descriptions that cannot express
# every option of the rule.
approximate_marker = "{{ text.approximate_marker }}"

[output]
# count: int >= 1
# Number of occurrences listed by 'repeatr expand' without --count.
count = {{ output.count }}

# timezone: str = 'local' | 'none' | a zone name such as 'Europe/Paris'
# Zone given to rules that do not name one. 'none' keeps
# occurrences naive.
timezone = "{{ output.timezone }}"
"""

# ─── Save Config with Comments ───────────────────────────────


def save_config_from_template(config: RepeatrConfig, path: Path):
    template = Template(CONFIG_TEMPLATE)
    rendered = template.render(**config.model_dump())
    path.write_text(rendered.strip() + "\n", encoding="utf-8")
    print(f"✅ Config with comments written to: {path}")


# ─── Main Environment Class ───────────────────────────────


class RepeatrEnvironment:
    def __init__(self):
        self._home = self._resolve_home()
        self._config: Optional[RepeatrConfig] = None

    @property
    def home(self) -> Path:
        return self._home

    @property
    def config_path(self) -> Path:
        return self.home / "config.toml"

    @property
    def log_dir(self) -> Path:
        return self.home / "logs"

    def ensure(self, init_config: bool = True):
        self.home.mkdir(parents=True, exist_ok=True)

        if init_config and not self.config_path.exists():
            save_config_from_template(RepeatrConfig(), self.config_path)

    def load_config(self) -> RepeatrConfig:
        # Step 1: Create the file if it doesn't exist
        if not self.config_path.exists():
            config = RepeatrConfig()
            self.home.mkdir(parents=True, exist_ok=True)
            save_config_from_template(config, self.config_path)
            self._config = config
            return config

        # Step 2: Try to load and validate the config
        try:
            with open(self.config_path, "rb") as f:
                data = tomllib.load(f)
            config = RepeatrConfig.model_validate(data)
        except (ValidationError, tomllib.TOMLDecodeError) as e:
            print(f"⚠️ Config error in {self.config_path}: {e}\nUsing defaults.")
            config = RepeatrConfig()

        # Step 3: Always regenerate the canonical version
        template = Template(CONFIG_TEMPLATE)
        rendered = template.render(**config.model_dump()).strip() + "\n"

        current_text = self.config_path.read_text(encoding="utf-8")
        if rendered != current_text:
            self.config_path.write_text(rendered, encoding="utf-8")
            print(f"✅ Updated {self.config_path} with any missing defaults.")

        self._config = config
        return config

    @property
    def config(self) -> RepeatrConfig:
        if self._config is None:
            return self.load_config()
        return self._config

    def _resolve_home(self) -> Path:
        cwd = Path.cwd()
        if (cwd / "config.toml").exists() and (cwd / "logs").is_dir():
            return cwd

        env_home = os.getenv("REPEATR_HOME")
        if env_home:
            return Path(env_home).expanduser()

        xdg_home = os.getenv("XDG_CONFIG_HOME")
        if xdg_home:
            return Path(xdg_home).expanduser() / "repeatr"
        else:
            return Path.home() / ".config" / "repeatr"
