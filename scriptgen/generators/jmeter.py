import logging
import os
import re
import xml.etree.ElementTree as ET
from xml.dom import minidom
from typing import Dict, List, Optional, Sequence, Union

from scriptgen.config import GeneratorSettings
from scriptgen.errors import UninitializedGeneratorError
from scriptgen.generators.base import (CorrelationHint, RequestDescriptor, ScriptContext, Step,
                                       ValidationDescriptor, finalize_step_names, new_step, split_server)
from scriptgen.models import CommandType, DataPool

logger = logging.getLogger(__name__)

# headers handled by the cookie manager or recomputed by JMeter
SKIPPED_HEADERS = {"host", "content-length", "cookie"}

# (guiclass, testname, file suffix) of the collectors left out of abbreviated scripts
OPTIONAL_COLLECTORS = [
    ("SimpleDataWriter", "Results XML File", "_results.xml"),
    ("SimpleDataWriter", "Results Log File", "_results.jtl"),
    ("StatVisualizer", "Aggregate Report", ""),
    ("TableVisualizer", "View Results in Table", ""),
    ("RespTimeGraphVisualizer", "Response Time Graph", ""),
]

# characters outside the XML 1.0 Char production, e.g. binary bytes in captured bodies
ILLEGAL_XML_CHARS = re.compile("[^\u0009\u000A\u000D\u0020-\uD7FF\uE000-\uFFFD\U00010000-\U0010FFFF]")


def _xml_text(value: str) -> str:
    return ILLEGAL_XML_CHARS.sub("", value)


class JMeterGenerator:
    """Builds one JMeter test plan (.jmx) from the registered steps and data pools."""

    def __init__(self, settings: Optional[GeneratorSettings] = None):
        self.settings = settings or GeneratorSettings()
        self.home_folder: Optional[str] = None
        self.script_name: Optional[str] = None
        self.server_name = ""
        self.web_app_name = ""
        self.is_abbreviated = False
        self.data_pools_folder = ""
        self._data_pools: List[DataPool] = []
        self.steps: List[Step] = []

    def initialize(self, output_path: str, script_name: str, server_name: str, web_app_name: str,
                   is_abbreviated: bool = False):
        self.home_folder = output_path
        self.script_name = script_name
        self.server_name = server_name
        self.web_app_name = web_app_name
        self.is_abbreviated = is_abbreviated

    def add_data_pools(self, data_pools: Sequence[DataPool], source_directory: Optional[str] = None):
        self._data_pools.extend(data_pools)
        if source_directory:
            self.data_pools_folder = os.path.join(source_directory, "")

    def add_step(self, name: str, type: Union[str, CommandType], description: str, context: ScriptContext,
                 index: int) -> Step:
        step = new_step(name, type, description, context, index, self.settings.default_port)
        self.steps.append(step)
        return step

    def get_last_step(self) -> Optional[Step]:
        return self.steps[-1] if self.steps else None

    @property
    def output_file(self) -> str:
        return os.path.join(self.home_folder, f"{self.script_name}.jmx")

    @staticmethod
    def _create_element(parent: ET.Element, tag: str, attrib: Dict[str, str] = None, text: str = None) -> ET.Element:
        attrib = {k: _xml_text(v) for k, v in attrib.items()} if attrib is not None else {}
        element = ET.SubElement(parent, tag, attrib=attrib)
        if text is not None:
            element.text = _xml_text(text)
        return element

    @staticmethod
    def _prettify_xml(elem: ET.Element) -> str:
        rough_string = ET.tostring(elem, 'utf-8')
        reparsed = minidom.parseString(rough_string)
        return reparsed.toprettyxml(indent="  ")

    def _add_argument(self, collection_prop: ET.Element, name: str, value: str):
        arg = self._create_element(collection_prop, "elementProp", {"name": name, "elementType": "Argument"})
        self._create_element(arg, "stringProp", {"name": "Argument.name"}, name)
        self._create_element(arg, "stringProp", {"name": "Argument.value"}, value)
        self._create_element(arg, "stringProp", {"name": "Argument.metadata"}, "=")

    def _add_test_plan(self, parent_hash_tree: ET.Element):
        test_plan = self._create_element(parent_hash_tree, "TestPlan",
                                         {"guiclass": "TestPlanGui", "testclass": "TestPlan",
                                          "testname": "Test Plan", "enabled": "true"})
        self._create_element(test_plan, "stringProp", {"name": "TestPlan.comments"}, "")
        self._create_element(test_plan, "boolProp", {"name": "TestPlan.functional_mode"}, "false")
        self._create_element(test_plan, "boolProp", {"name": "TestPlan.serialize_threadgroups"}, "false")
        udv_prop = self._create_element(test_plan, "elementProp",
                                        {"name": "TestPlan.user_defined_variables", "elementType": "Arguments",
                                         "guiclass": "ArgumentsPanel", "testclass": "Arguments",
                                         "testname": "User Defined Variables", "enabled": "true"})
        collection_prop = self._create_element(udv_prop, "collectionProp", {"name": "Arguments.arguments"})
        if not self.is_abbreviated:
            self._add_argument(collection_prop, "HomeFolder", self.home_folder)
        self._add_argument(collection_prop, self.settings.debug_variable, "0")
        self._create_element(test_plan, "stringProp", {"name": "TestPlan.user_define_classpath"}, "")

    def _add_arguments(self, parent_hash_tree: ET.Element, name: str, variables: Dict[str, str]):
        udv_attrib = {"guiclass": "ArgumentsPanel", "testclass": "Arguments", "testname": name, "enabled": "true"}
        udv = self._create_element(parent_hash_tree, "Arguments", udv_attrib)
        collection_prop = self._create_element(udv, "collectionProp", {"name": "Arguments.arguments"})
        for var_name, value in variables.items():
            self._add_argument(collection_prop, var_name, value)
        parent_hash_tree.append(ET.Element("hashTree"))

    def _add_result_collector(self, parent_hash_tree: ET.Element, guiclass: str, testname: str, filename: str = ""):
        listener_attrib = {"guiclass": guiclass, "testclass": "ResultCollector", "testname": testname,
                           "enabled": "true"}
        listener = self._create_element(parent_hash_tree, "ResultCollector", listener_attrib)
        self._create_element(listener, "boolProp", {"name": "ResultCollector.error_logging"}, "false")
        obj_prop = self._create_element(listener, "objProp")
        self._create_element(obj_prop, "name", text="saveConfig")
        value = self._create_element(obj_prop, "value", {"class": "SampleSaveConfiguration"})
        for flag in ("time", "latency", "timestamp", "success", "label", "code", "message", "threadName",
                     "dataType", "assertions", "subresults", "fieldNames", "bytes", "url", "connectTime"):
            self._create_element(value, flag, text="true")
        for flag in ("encoding", "responseData", "samplerData", "xml", "responseHeaders", "requestHeaders"):
            self._create_element(value, flag, text="false")
        self._create_element(listener, "stringProp", {"name": "filename"}, filename)
        parent_hash_tree.append(ET.Element("hashTree"))

    def _add_thread_group(self, parent_hash_tree: ET.Element) -> ET.Element:
        threads = f"threads{self.script_name}"
        iterations = f"iterations{self.script_name}"
        ramp_up = f"rampUp{self.script_name}"
        thread_group = self._create_element(parent_hash_tree, "ThreadGroup",
                                            {"guiclass": "ThreadGroupGui", "testclass": "ThreadGroup",
                                             "testname": self.script_name, "enabled": "true"})
        self._create_element(thread_group, "stringProp", {"name": "ThreadGroup.on_sample_error"}, "continue")
        loop_controller = self._create_element(thread_group, "elementProp",
                                               {"name": "ThreadGroup.main_controller", "elementType": "LoopController",
                                                "guiclass": "LoopControlPanel", "testclass": "LoopController",
                                                "testname": "Loop Controller", "enabled": "true"})
        self._create_element(loop_controller, "boolProp", {"name": "LoopController.continue_forever"}, "false")
        self._create_element(loop_controller, "stringProp", {"name": "LoopController.loops"},
                             f"${{__P({iterations},{self.settings.iterations})}}")
        self._create_element(thread_group, "stringProp", {"name": "ThreadGroup.num_threads"},
                             f"${{__P({threads},{self.settings.threads})}}")
        self._create_element(thread_group, "stringProp", {"name": "ThreadGroup.ramp_time"},
                             f"${{__P({ramp_up},{self.settings.ramp_up})}}")
        self._create_element(thread_group, "boolProp", {"name": "ThreadGroup.scheduler"}, "false")
        self._create_element(thread_group, "stringProp", {"name": "ThreadGroup.duration"}, "")
        self._create_element(thread_group, "stringProp", {"name": "ThreadGroup.delay"}, "")
        return self._create_element(parent_hash_tree, "hashTree")

    def _add_cookie_manager(self, parent_hash_tree: ET.Element):
        cookie_manager = self._create_element(parent_hash_tree, "CookieManager",
                                              {"guiclass": "CookiePanel", "testclass": "CookieManager",
                                               "testname": "HTTP Cookie Manager", "enabled": "true"})
        self._create_element(cookie_manager, "collectionProp", {"name": "CookieManager.cookies"})
        self._create_element(cookie_manager, "boolProp", {"name": "CookieManager.clearEachIteration"}, "true")
        parent_hash_tree.append(ET.Element("hashTree"))

    def _add_http_request_defaults(self, parent_hash_tree: ET.Element, server: str, port: str):
        config_defaults_attrib = {"guiclass": "HttpDefaultsGui", "testclass": "ConfigTestElement",
                                  "testname": "HTTP Request Defaults", "enabled": "true"}
        config_defaults = self._create_element(parent_hash_tree, "ConfigTestElement", config_defaults_attrib)
        arguments_element = self._create_element(config_defaults, "elementProp",
                                                 {"name": "HTTPsampler.Arguments", "elementType": "Arguments",
                                                  "guiclass": "HTTPArgumentsPanel", "testclass": "Arguments",
                                                  "testname": "User Defined Variables", "enabled": "true"})
        self._create_element(arguments_element, "collectionProp", {"name": "Arguments.arguments"})
        self._create_element(config_defaults, "stringProp", {"name": "HTTPSampler.domain"}, server)
        self._create_element(config_defaults, "stringProp", {"name": "HTTPSampler.port"}, port)
        self._create_element(config_defaults, "stringProp", {"name": "HTTPSampler.protocol"}, "http")
        self._create_element(config_defaults, "stringProp", {"name": "HTTPSampler.contentEncoding"}, "")
        self._create_element(config_defaults, "stringProp", {"name": "HTTPSampler.path"}, "")
        parent_hash_tree.append(ET.Element("hashTree"))

    def _add_csv_data_set_config(self, parent_hash_tree: ET.Element, data_pool: DataPool):
        csv_attrib = {"guiclass": "TestBeanGUI", "testclass": "CSVDataSet",
                      "testname": f"CSV Data Set Config - {data_pool.name}", "enabled": "true"}
        csv_config = self._create_element(parent_hash_tree, "CSVDataSet", csv_attrib)
        self._create_element(csv_config, "stringProp", {"name": "filename"}, data_pool.file_name)
        self._create_element(csv_config, "stringProp", {"name": "fileEncoding"}, "")
        self._create_element(csv_config, "stringProp", {"name": "variableNames"}, data_pool.columns_joined(","))
        self._create_element(csv_config, "boolProp", {"name": "ignoreFirstLine"}, "false")
        self._create_element(csv_config, "stringProp", {"name": "delimiter"}, ",")
        self._create_element(csv_config, "boolProp", {"name": "quotedData"}, "false")
        self._create_element(csv_config, "boolProp", {"name": "recycle"}, "true")
        self._create_element(csv_config, "boolProp", {"name": "stopThread"}, "false")
        self._create_element(csv_config, "stringProp", {"name": "shareMode"}, "shareMode.all")
        parent_hash_tree.append(ET.Element("hashTree"))

    def _add_regex_extractor(self, parent_hash_tree: ET.Element, hint: CorrelationHint, enabled: bool = True):
        extractor_attrib = {"guiclass": "RegexExtractorGui", "testclass": "RegexExtractor",
                            "testname": f"Extract {hint.ref_name}", "enabled": "true" if enabled else "false"}
        extractor = self._create_element(parent_hash_tree, "RegexExtractor", extractor_attrib)
        self._create_element(extractor, "stringProp", {"name": "RegexExtractor.useHeaders"}, "false")
        self._create_element(extractor, "stringProp", {"name": "RegexExtractor.refname"}, hint.ref_name)
        self._create_element(extractor, "stringProp", {"name": "RegexExtractor.regex"}, hint.regex)
        self._create_element(extractor, "stringProp", {"name": "RegexExtractor.template"}, hint.template)
        self._create_element(extractor, "stringProp", {"name": "RegexExtractor.default"}, hint.default)
        self._create_element(extractor, "stringProp", {"name": "RegexExtractor.match_number"}, hint.match_number)
        parent_hash_tree.append(ET.Element("hashTree"))

    def _add_header_manager(self, parent_hash_tree: ET.Element, headers: Dict[str, str]):
        header_manager_attrib = {"guiclass": "HeaderPanel", "testclass": "HeaderManager",
                                 "testname": "HTTP Header Manager", "enabled": "true"}
        header_manager = self._create_element(parent_hash_tree, "HeaderManager", header_manager_attrib)
        collection_prop = self._create_element(header_manager, "collectionProp", {"name": "HeaderManager.headers"})
        for name, value in headers.items():
            header_elem = self._create_element(collection_prop, "elementProp", {"name": name, "elementType": "Header"})
            self._create_element(header_elem, "stringProp", {"name": "Header.name"}, name)
            self._create_element(header_elem, "stringProp", {"name": "Header.value"}, value)
        parent_hash_tree.append(ET.Element("hashTree"))

    def _add_response_assertion(self, parent_hash_tree: ET.Element, validation: ValidationDescriptor):
        assertion_attrib = {"guiclass": "AssertionGui", "testclass": "ResponseAssertion",
                            "testname": f"Validation {validation.name}", "enabled": "true"}
        assertion = self._create_element(parent_hash_tree, "ResponseAssertion", assertion_attrib)
        collection_prop = self._create_element(assertion, "collectionProp", {"name": "Asserion.test_strings"})
        for i, text in enumerate(validation.test_strings):
            self._create_element(collection_prop, "stringProp", {"name": str(i)}, text)
        self._create_element(assertion, "stringProp", {"name": "Assertion.test_field"}, "Assertion.response_data")
        self._create_element(assertion, "boolProp", {"name": "Assertion.assume_success"}, "false")
        self._create_element(assertion, "intProp", {"name": "Assertion.test_type"}, "2")  # 2 = "Contains"
        parent_hash_tree.append(ET.Element("hashTree"))

    def _add_http_request_sampler(self, parent_hash_tree: ET.Element, step: Step, request: RequestDescriptor):
        sampler_attrib = {"guiclass": "HttpTestSampleGui", "testclass": "HTTPSamplerProxy",
                          "testname": request.label, "enabled": "true"}
        sampler = self._create_element(parent_hash_tree, "HTTPSamplerProxy", sampler_attrib)
        arguments_element = self._create_element(sampler, "elementProp",
                                                 {"name": "HTTPsampler.Arguments", "elementType": "Arguments",
                                                  "guiclass": "HTTPArgumentsPanel", "testclass": "Arguments",
                                                  "enabled": "true"})
        arguments_collection_prop = self._create_element(arguments_element, "collectionProp",
                                                         {"name": "Arguments.arguments"})

        has_body = request.body is not None
        self._create_element(sampler, "boolProp", {"name": "HTTPSampler.postBodyRaw"}, "true" if has_body else "false")
        if has_body:
            arg_elem = self._create_element(arguments_collection_prop, "elementProp",
                                            {"name": "", "elementType": "HTTPArgument"})
            self._create_element(arg_elem, "boolProp", {"name": "HTTPArgument.always_encode"}, "false")
            self._create_element(arg_elem, "stringProp", {"name": "Argument.value"}, request.body)
            self._create_element(arg_elem, "stringProp", {"name": "Argument.metadata"}, "=")
            path = request.path
            if request.query:
                path += "?" + "&".join(f"{name}={value}" for name, value in request.query)
        else:
            path = request.path
            for name, value in request.query:
                arg_elem = self._create_element(arguments_collection_prop, "elementProp",
                                                {"name": name, "elementType": "HTTPArgument"})
                self._create_element(arg_elem, "boolProp", {"name": "HTTPArgument.always_encode"}, "false")
                self._create_element(arg_elem, "stringProp", {"name": "Argument.value"}, value)
                self._create_element(arg_elem, "stringProp", {"name": "Argument.metadata"}, "=")
                self._create_element(arg_elem, "boolProp", {"name": "HTTPArgument.use_equals"}, "true")
                self._create_element(arg_elem, "stringProp", {"name": "Argument.name"}, name)

        self._create_element(sampler, "stringProp", {"name": "HTTPSampler.domain"}, step.server_host)
        self._create_element(sampler, "stringProp", {"name": "HTTPSampler.port"}, step.server_port)
        self._create_element(sampler, "stringProp", {"name": "HTTPSampler.path"}, path)
        self._create_element(sampler, "stringProp", {"name": "HTTPSampler.method"}, request.method)
        self._create_element(sampler, "boolProp", {"name": "HTTPSampler.follow_redirects"}, "true")
        self._create_element(sampler, "boolProp", {"name": "HTTPSampler.use_keepalive"}, "true")
        sampler_hash_tree = self._create_element(parent_hash_tree, "hashTree")

        headers = {k: v for k, v in request.headers.items() if k.lower() not in SKIPPED_HEADERS}
        if headers:
            self._add_header_manager(sampler_hash_tree, headers)
        for hint in request.hints:
            self._add_regex_extractor(sampler_hash_tree, hint)

    def _add_transaction_controller(self, parent_hash_tree: ET.Element, name: str) -> ET.Element:
        tc_attrib = {"guiclass": "TransactionControllerGui", "testclass": "TransactionController",
                     "testname": name, "enabled": "true"}
        tc = self._create_element(parent_hash_tree, "TransactionController", tc_attrib)
        self._create_element(tc, "boolProp", {"name": "TransactionController.parent"}, "true")
        self._create_element(tc, "boolProp", {"name": "TransactionController.includeTimers"}, "false")
        return self._create_element(parent_hash_tree, "hashTree")

    def _add_step(self, parent_hash_tree: ET.Element, display_name: str, step: Step):
        tc_hash_tree = self._add_transaction_controller(parent_hash_tree, display_name)
        for request in step.requests:
            self._add_http_request_sampler(tc_hash_tree, step, request)
        for validation in step.validations:
            self._add_response_assertion(tc_hash_tree, validation)

    def _add_timer(self, parent_hash_tree: ET.Element, variable: str):
        timer_attrib = {"guiclass": "ConstantTimerGui", "testclass": "ConstantTimer",
                        "testname": "Think Time", "enabled": "true"}
        timer = self._create_element(parent_hash_tree, "ConstantTimer", timer_attrib)
        self._create_element(timer, "stringProp", {"name": "ConstantTimer.delay"}, f"${{{variable}}}")
        parent_hash_tree.append(ET.Element("hashTree"))

    def _add_thread_group_content(self, thread_group_hash_tree: ET.Element):
        self._add_cookie_manager(thread_group_hash_tree)
        server, port = split_server(self.server_name, self.settings.default_port)
        self._add_http_request_defaults(thread_group_hash_tree, server, port)
        for data_pool in self._data_pools:
            self._add_csv_data_set_config(thread_group_hash_tree, data_pool)
        self._add_regex_extractor(thread_group_hash_tree,
                                  CorrelationHint(ref_name="example", regex="name=\"example\" value=\"(.+?)\""),
                                  enabled=False)
        for display_name, step in finalize_step_names(self.steps):
            self._add_step(thread_group_hash_tree, display_name, step)
            self._add_timer(thread_group_hash_tree, "ThinkTimeMedium")

    def build(self) -> ET.Element:
        if self.script_name is None:
            raise UninitializedGeneratorError("JMeter generator used before initialize()")
        root = ET.Element("jmeterTestPlan", {"version": self.settings.version,
                                             "properties": self.settings.properties,
                                             "jmeter": self.settings.jmeter})
        root_hash_tree = self._create_element(root, "hashTree")
        self._add_test_plan(root_hash_tree)
        test_plan_hash_tree = self._create_element(root_hash_tree, "hashTree")

        if not self.is_abbreviated:
            self._add_arguments(test_plan_hash_tree, "Paths", {
                "DataPoolsFolder": self.data_pools_folder or "${HomeFolder}",
                "ResultsFolder": "${HomeFolder}",
            })
        self._add_arguments(test_plan_hash_tree, "ThinkTimes", dict(self.settings.think_times))

        self._add_result_collector(test_plan_hash_tree, "ViewResultsFullVisualizer", "View Results Tree")
        if not self.is_abbreviated:
            for guiclass, testname, suffix in OPTIONAL_COLLECTORS:
                filename = f"${{ResultsFolder}}{self.script_name}{suffix}" if suffix else ""
                self._add_result_collector(test_plan_hash_tree, guiclass, testname, filename)

        thread_group_hash_tree = self._add_thread_group(test_plan_hash_tree)
        self._add_thread_group_content(thread_group_hash_tree)
        return root

    def save(self) -> str:
        root = self.build()
        output_file = self.output_file
        with open(output_file, "w", encoding="utf-8") as f:
            f.write(self._prettify_xml(root))
        logger.info(f"JMeter script with {len(self.steps)} steps saved to {output_file}")
        return output_file
