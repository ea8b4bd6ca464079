import logging
from typing import Any, Callable, List, Optional, Sequence, Union

from scriptgen.config import GeneratorSettings, SegmenterConfig
from scriptgen.errors import InputMissingError, MalformedOutlineError
from scriptgen.generators import GeneratorType, get_generator
from scriptgen.generators.base import Annotator, ScriptContext
from scriptgen.models import CapturedExchange, CommandType, Outline
from scriptgen.segmenter import SessionSegmenter

logger = logging.getLogger(__name__)

AUTOGENERATED_SCRIPT_NAME = "_AutogeneratedName"

Comparer = Callable[[Sequence[Sequence[CapturedExchange]], Sequence[str]], Any]


class ScriptBuilder:
    """
    Turns capture sessions plus an outline into a script for one backend.
    When no outline is given, one is segmented from the first capture session.
    """

    def __init__(self, output_path: str, datapools_path: Optional[str], outline: Optional[Outline],
                 capture_sessions: Optional[Sequence[Sequence[CapturedExchange]]], server: str, web_app: str,
                 abbreviated: bool = False, comparer: Optional[Comparer] = None,
                 annotator: Optional[Annotator] = None, datapool_sources: Sequence[str] = (),
                 segmenter_config: Optional[SegmenterConfig] = None,
                 settings: Optional[GeneratorSettings] = None, working_dir: Optional[str] = None):
        if capture_sessions is None:
            logger.error("No capture sessions supplied")
            raise InputMissingError("Capture sessions are missing")
        if len(capture_sessions) < 1:
            logger.error("Capture session list is empty")
            raise InputMissingError("Capture sessions are empty")

        self.output_path = output_path
        self.datapools_path = datapools_path
        self.abbreviated = abbreviated
        self.segmenter_config = segmenter_config or SegmenterConfig()
        self.settings = settings or GeneratorSettings()
        self.capture_sessions: List[Sequence[CapturedExchange]] = list(capture_sessions)
        self.context = ScriptContext(server_name=server, web_app_name=web_app, annotator=annotator)

        if outline is None:
            segmenter = SessionSegmenter(self.segmenter_config, working_dir)
            outline = segmenter.segment(self.capture_sessions[0], datapool_sources, AUTOGENERATED_SCRIPT_NAME)
        self.outline = outline
        self.script_name = outline.script_name

        # sessions are compared once, the result is shared by every step
        self.comparison_result = None
        if len(self.capture_sessions) > 1 and comparer is not None:
            self.comparison_result = comparer(self.capture_sessions, self.segmenter_config.extensions)

    @property
    def server_name(self) -> str:
        return self.context.server_name

    @property
    def web_app_name(self) -> str:
        return self.context.web_app_name

    def _exchange(self, request_id: int) -> CapturedExchange:
        session = self.capture_sessions[0]
        if not 0 <= request_id < len(session):
            raise MalformedOutlineError(
                f"Request id {request_id} is outside the capture session (0..{len(session) - 1})")
        return session[request_id]

    def generate_scripts(self, generator_type: Union[str, GeneratorType]) -> str:
        generator = get_generator(generator_type, self.settings)
        generator.initialize(self.output_path, self.script_name, self.server_name, self.web_app_name,
                             self.abbreviated)
        generator.add_data_pools(self.outline.data_pools, self.datapools_path)

        step_index = 0
        for command in self.outline.commands():
            if command.type in (CommandType.ACTION, CommandType.EVENT):
                step = generator.add_step(command.name, command.type, command.description, self.context, step_index)
                for request_id in command.request_ids:
                    step.add_request(self._exchange(request_id), self.comparison_result)
                step_index += 1
            elif command.type == CommandType.VALIDATION:
                last_step = generator.get_last_step()
                if last_step is None:
                    logger.error(f"Validation '{command.name}' appears before the first step")
                    raise MalformedOutlineError(f"Validation '{command.name}' appears before the first step")
                last_step.add_validation(command)

        output_file = generator.save()
        logger.info(f"Generated {step_index} steps for '{self.script_name}' with the {generator_type} backend")
        return output_file
