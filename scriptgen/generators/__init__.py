import logging
from enum import Enum
from typing import Callable, Dict, Optional, Union

from scriptgen.config import GeneratorSettings
from scriptgen.errors import UnrecognizedBackendError
from scriptgen.generators.base import ScriptGenerator
from scriptgen.generators.jmeter import JMeterGenerator
from scriptgen.generators.testing import TestingGenerator

logger = logging.getLogger(__name__)


class GeneratorType(str, Enum):
    JMETER = "jmeter"
    TESTING = "testing"

    def __str__(self) -> str:
        return self.value


_BACKENDS: Dict[GeneratorType, Callable[[GeneratorSettings], ScriptGenerator]] = {
    GeneratorType.JMETER: lambda settings: JMeterGenerator(settings),
    GeneratorType.TESTING: lambda settings: TestingGenerator(),
}


def get_generator(generator_type: Union[str, GeneratorType],
                  settings: Optional[GeneratorSettings] = None) -> ScriptGenerator:
    try:
        selector = GeneratorType(generator_type.lower() if isinstance(generator_type, str) else generator_type)
    except ValueError:
        logger.error(f"Unknown generator type requested: {generator_type}")
        raise UnrecognizedBackendError(f"GeneratorType is not implemented: {generator_type}")
    return _BACKENDS[selector](settings or GeneratorSettings())
