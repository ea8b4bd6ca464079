import logging
import os
from dataclasses import asdict
from typing import Any, Dict, List, Optional, Sequence, Union

import yaml

from scriptgen.errors import UninitializedGeneratorError
from scriptgen.generators.base import ScriptContext, Step, finalize_step_names, new_step
from scriptgen.models import CommandType, DataPool

logger = logging.getLogger(__name__)


class TestingGenerator:
    """Records every call and saves a YAML summary of the script instead of an engine file."""

    __test__ = False

    def __init__(self):
        self.output_path: Optional[str] = None
        self.script_name: Optional[str] = None
        self.server_name = ""
        self.web_app_name = ""
        self.is_abbreviated = False
        self.data_pools: List[DataPool] = []
        self.data_pools_source: Optional[str] = None
        self.steps: List[Step] = []

    def initialize(self, output_path: str, script_name: str, server_name: str, web_app_name: str,
                   is_abbreviated: bool = False):
        self.output_path = output_path
        self.script_name = script_name
        self.server_name = server_name
        self.web_app_name = web_app_name
        self.is_abbreviated = is_abbreviated

    def add_data_pools(self, data_pools: Sequence[DataPool], source_directory: Optional[str] = None):
        self.data_pools.extend(data_pools)
        self.data_pools_source = source_directory

    def add_step(self, name: str, type: Union[str, CommandType], description: str, context: ScriptContext,
                 index: int) -> Step:
        step = new_step(name, type, description, context, index)
        self.steps.append(step)
        return step

    def get_last_step(self) -> Optional[Step]:
        return self.steps[-1] if self.steps else None

    def to_dict(self) -> Dict[str, Any]:
        steps = []
        for display_name, step in finalize_step_names(self.steps):
            steps.append({
                "name": display_name,
                "description": step.description,
                "server": f"{step.server_host}:{step.server_port}",
                "web_app": step.web_app,
                "requests": [{**asdict(r), "query": [list(q) for q in r.query]} for r in step.requests],
                "validations": [asdict(v) for v in step.validations],
            })
        return {
            "script": self.script_name,
            "server": self.server_name,
            "web_app": self.web_app_name,
            "abbreviated": self.is_abbreviated,
            "data_pools": [dp.to_dict() for dp in self.data_pools],
            "steps": steps,
        }

    def save(self) -> str:
        if self.script_name is None:
            raise UninitializedGeneratorError("Testing generator used before initialize()")
        output_file = os.path.join(self.output_path, f"{self.script_name}.yaml")
        with open(output_file, "w", encoding="utf-8") as f:
            yaml.safe_dump(self.to_dict(), f, allow_unicode=True, sort_keys=False)
        logger.info(f"Testing script summary saved to {output_file}")
        return output_file
