"""Tests for the JMeter test plan serializer."""

import os
import xml.etree.ElementTree as ET

import pytest

from scriptgen.config import GeneratorSettings
from scriptgen.generators.base import CorrelationHint, ScriptContext
from scriptgen.generators.jmeter import JMeterGenerator
from scriptgen.models import Command, CommandType, DataPool

OPTIONAL_COLLECTORS = {
    'Results XML File',
    'Results Log File',
    'Aggregate Report',
    'View Results in Table',
    'Response Time Graph',
}


@pytest.fixture
def generator(tmp_path) -> JMeterGenerator:
    """Provide an initialized JMeter generator writing into a temporary folder."""
    generator = JMeterGenerator()
    generator.initialize(str(tmp_path), 'Shop', 'shop.example.com:8080', 'app', False)
    return generator


def saved_tree(generator: JMeterGenerator) -> ET.Element:
    """Save the generator and parse the written test plan."""
    return ET.parse(generator.save()).getroot()


def test_empty_plan_has_scaffolding(generator: JMeterGenerator, tmp_path) -> None:
    """A plan without steps or pools still holds the fixed blocks in order."""
    root = saved_tree(generator)

    assert (tmp_path / 'Shop.jmx').exists()
    assert root.tag == 'jmeterTestPlan'
    assert root.attrib == {'version': '1.2', 'properties': '5.0', 'jmeter': '5.6.3'}
    root_hash_tree = root.find('hashTree')
    assert [child.tag for child in root_hash_tree] == ['TestPlan', 'hashTree']

    test_plan = root_hash_tree.find('TestPlan')
    assert test_plan.find("boolProp[@name='TestPlan.functional_mode']").text == 'false'
    assert test_plan.find("boolProp[@name='TestPlan.serialize_threadgroups']").text == 'false'
    variables = [e.get('name') for e in test_plan.iter('elementProp') if e.get('elementType') == 'Argument']
    assert variables == ['HomeFolder', 'debug']

    plan_content = root_hash_tree.find('hashTree')
    names = [child.get('testname') for child in plan_content if child.tag != 'hashTree']
    assert names == ['Paths', 'ThinkTimes', 'View Results Tree', 'Results XML File', 'Results Log File',
                     'Aggregate Report', 'View Results in Table', 'Response Time Graph', 'Shop']

    thread_group_tree = plan_content.findall('hashTree')[-1]
    tags = [child.tag for child in thread_group_tree if child.tag != 'hashTree']
    assert tags == ['CookieManager', 'ConfigTestElement', 'RegexExtractor']


def test_http_defaults_use_script_server(generator: JMeterGenerator) -> None:
    """HTTP defaults point to the script-level host and port."""
    root = saved_tree(generator)

    defaults = root.find(".//ConfigTestElement[@testname='HTTP Request Defaults']")
    assert defaults.find("stringProp[@name='HTTPSampler.domain']").text == 'shop.example.com'
    assert defaults.find("stringProp[@name='HTTPSampler.port']").text == '8080'


def test_example_extractor_is_disabled(generator: JMeterGenerator) -> None:
    """The example regular expression extractor is present but disabled."""
    root = saved_tree(generator)

    assert root.find('.//RegexExtractor').get('enabled') == 'false'


@pytest.mark.parametrize('with_content', (
    pytest.param(False, id='empty'),
    pytest.param(True, id='with steps and pools'),
))
def test_abbreviated_mode(tmp_path, make_exchange, with_content: bool) -> None:
    """Abbreviated plans never hold paths, home folder or file collectors."""
    generator = JMeterGenerator()
    generator.initialize(str(tmp_path), 'Shop', 'host', 'app', True)
    if with_content:
        generator.add_data_pools([DataPool('users', 'users.csv', ['id'])], str(tmp_path))
        step = generator.add_step('home', 'Event', '', ScriptContext('host', 'app'), 0)
        step.add_request(make_exchange(0), None)

    root = saved_tree(generator)

    testnames = {e.get('testname') for e in root.iter()}
    assert 'Paths' not in testnames
    assert not testnames & OPTIONAL_COLLECTORS
    assert 'View Results Tree' in testnames
    assert 'ThinkTimes' in testnames
    assert 'HomeFolder' not in {e.get('name') for e in root.iter('elementProp')}


def test_data_pools_become_csv_data_sets(generator: JMeterGenerator) -> None:
    """Each pool gets a CSV data set with its joined column list, in order."""
    generator.add_data_pools([
        DataPool('orders', 'orders.csv', ['id', 'name', 'amount']),
        DataPool('users', 'users.csv', ['login']),
    ], None)

    root = saved_tree(generator)

    data_sets = root.findall('.//CSVDataSet')
    assert [d.find("stringProp[@name='filename']").text for d in data_sets] == ['orders.csv', 'users.csv']
    assert [d.find("stringProp[@name='variableNames']").text for d in data_sets] == ['id,name,amount', 'login']


def test_data_pool_folder_reference(generator: JMeterGenerator, tmp_path) -> None:
    """The source directory lands in the paths block; data sets keep the bare file name."""
    generator.add_data_pools([DataPool('orders', 'orders.csv', ['id'])], str(tmp_path / 'pools'))

    root = saved_tree(generator)

    assert root.find(".//CSVDataSet/stringProp[@name='filename']").text == 'orders.csv'
    paths = root.find(".//Arguments[@testname='Paths']")
    folder = paths.find(".//elementProp[@name='DataPoolsFolder']/stringProp[@name='Argument.value']")
    assert folder.text == str(tmp_path / 'pools') + os.sep


def test_steps_in_index_order_with_think_times(generator: JMeterGenerator, make_exchange) -> None:
    """Steps become named transaction controllers, each followed by a medium think time."""
    context = ScriptContext('shop.example.com:8080', 'app')
    for i in range(10):
        step = generator.add_step(f'page{i}', 'Action' if i % 2 else 'Event', '', context, i)
        step.add_request(make_exchange(i), None)

    root = saved_tree(generator)

    thread_group_tree = root.find('hashTree/hashTree').findall('hashTree')[-1]
    tags = [child.tag for child in thread_group_tree if child.tag != 'hashTree']
    assert tags[3:] == ['TransactionController', 'ConstantTimer'] * 10
    controllers = [c.get('testname') for c in thread_group_tree.findall('TransactionController')]
    assert controllers[0] == 'Step 00 - Event page0'
    assert controllers[3] == 'Step 03 - Action page3'
    delays = {t.find('stringProp').text for t in thread_group_tree.findall('ConstantTimer')}
    assert delays == {'${ThinkTimeMedium}'}


def test_step_content(generator: JMeterGenerator, make_exchange) -> None:
    """Requests, headers, correlation extractors and validations are written inside the step."""
    def annotator(exchange, result):
        return [CorrelationHint(ref_name='sessionToken', regex='token="(.+?)"')]

    context = ScriptContext('shop.example.com:8080', 'app', annotator=annotator)
    step = generator.add_step('search', 'Event', '', context, 0)
    step.add_request(make_exchange(0, url='http://shop.example.com/app/search.jsp?q=shoes'), None)
    step.add_request(make_exchange(1, url='http://shop.example.com/app/cart', method='POST', body='item=1'), None)
    step.add_validation(Command('found', CommandType.VALIDATION, 'Results for shoes'))

    root = saved_tree(generator)

    controller_tree = root.find('.//TransactionController/..').findall('hashTree')[-2]
    samplers = controller_tree.findall('HTTPSamplerProxy')
    assert [s.find("stringProp[@name='HTTPSampler.method']").text for s in samplers] == ['GET', 'POST']
    assert samplers[0].find("stringProp[@name='HTTPSampler.path']").text == '/app/search.jsp'
    assert samplers[0].find(".//elementProp[@name='q']/stringProp[@name='Argument.value']").text == 'shoes'
    assert samplers[1].find("boolProp[@name='HTTPSampler.postBodyRaw']").text == 'true'
    assert samplers[1].find(".//stringProp[@name='Argument.value']").text == 'item=1'

    header_names = [h.get('name') for h in controller_tree.iter('elementProp') if h.get('elementType') == 'Header']
    assert 'Accept' in header_names
    assert 'Host' not in header_names
    assert [e.find("stringProp[@name='RegexExtractor.refname']").text
            for e in controller_tree.iter('RegexExtractor')] == ['sessionToken', 'sessionToken']

    assertion = controller_tree.find('ResponseAssertion')
    assert assertion.find('collectionProp/stringProp').text == 'Results for shoes'


def test_save_is_repeatable(generator: JMeterGenerator, make_exchange) -> None:
    """Saving twice without changes writes the same document."""
    step = generator.add_step('home', 'Event', '', ScriptContext('host', 'app'), 0)
    step.add_request(make_exchange(0), None)

    first = open(generator.save(), encoding='utf-8').read()
    second = open(generator.save(), encoding='utf-8').read()

    assert first == second
    assert step.name == 'home'


def test_settings_drive_header_and_think_times(tmp_path) -> None:
    """Version attributes and think times come from the generator settings."""
    settings = GeneratorSettings(version='1.3', properties='5.1', jmeter='5.6.2',
                                 think_times={'ThinkTimeMedium': '500'})
    generator = JMeterGenerator(settings)
    generator.initialize(str(tmp_path), 'Shop', 'host', 'app', False)

    root = saved_tree(generator)

    assert root.attrib == {'version': '1.3', 'properties': '5.1', 'jmeter': '5.6.2'}
    think_times = root.find(".//Arguments[@testname='ThinkTimes']")
    assert [e.get('name') for e in think_times.iter('elementProp')] == ['ThinkTimeMedium']


def test_binary_body_is_written(generator: JMeterGenerator, make_exchange) -> None:
    """Control characters that XML cannot hold are dropped from captured values."""
    step = generator.add_step('upload', 'Action', '', ScriptContext('host', 'app'), 0)
    step.add_request(make_exchange(0, url='http://host/app/upload', method='POST', body='bin\x01\x02data'), None)

    root = saved_tree(generator)

    sampler = root.find('.//HTTPSamplerProxy')
    assert sampler.find(".//stringProp[@name='Argument.value']").text == 'bindata'
