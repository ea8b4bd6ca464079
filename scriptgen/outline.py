import json
import logging
import xml.etree.ElementTree as ET
from xml.dom import minidom
from typing import List, Union

import yaml

from scriptgen.errors import MalformedOutlineError
from scriptgen.models import Command, CommandType, DataPool, IncludedTestCase, Outline, OutlineEntry

logger = logging.getLogger(__name__)

OUTLINE_XML_VERSION = "1.0"


def _command_element(parent: ET.Element, command: Command) -> ET.Element:
    node = ET.SubElement(parent, "Command", {"CommandName": command.name, "CommandType": command.type.value,
                                             "CommandDsc": command.description})
    requests = ET.SubElement(node, "Requests")
    for request_id in command.request_ids:
        ET.SubElement(requests, "Request", {"Id": str(request_id)})
    parameters = ET.SubElement(node, "Parameters")
    for value in command.parameters:
        ET.SubElement(parameters, "Parameter", {"Value": value})
    return node


def outline_to_element(outline: Outline) -> ET.Element:
    root = ET.Element("ParentTestCase", {"Name": outline.script_name, "xmlversion": OUTLINE_XML_VERSION})
    data_pools = ET.SubElement(root, "DataPools")
    for dp in outline.data_pools:
        dp_node = ET.SubElement(data_pools, "DataPool", {"Name": dp.name, "File": dp.file_name})
        for column in dp.columns:
            ET.SubElement(dp_node, "DataPoolColumn", {"Name": column})
    for entry in outline.entries:
        if isinstance(entry, IncludedTestCase):
            itc = ET.SubElement(root, "IncludedTestCase", {"Name": entry.name})
            for command in entry.commands:
                _command_element(itc, command)
        else:
            _command_element(root, entry)
    return root


def outline_to_xml(outline: Outline) -> str:
    rough_string = ET.tostring(outline_to_element(outline), "utf-8")
    return minidom.parseString(rough_string).toprettyxml(indent="  ")


def _parse_command(node: ET.Element) -> Command:
    type_name = node.get("CommandType", "")
    try:
        command_type = CommandType(type_name)
    except ValueError:
        raise MalformedOutlineError(f"Command '{node.get('CommandName')}' has unknown type '{type_name}'")
    request_ids = []
    for request in node.iter("Request"):
        try:
            request_ids.append(int(request.get("Id", "")))
        except ValueError:
            raise MalformedOutlineError(f"Command '{node.get('CommandName')}' has a non-numeric request id")
    parameters = tuple(p.get("Value", p.text or "") for p in node.iter("Parameter"))
    return Command(name=node.get("CommandName", ""), type=command_type,
                   description=node.get("CommandDsc", ""), request_ids=tuple(request_ids),
                   parameters=parameters)


def outline_from_element(root: ET.Element) -> Outline:
    if root.tag != "ParentTestCase":
        raise MalformedOutlineError(f"Outline root must be ParentTestCase, found '{root.tag}'")
    data_pools: List[DataPool] = []
    entries: List[OutlineEntry] = []
    for child in root:
        if child.tag == "DataPools":
            for dp in child.findall("DataPool"):
                data_pools.append(DataPool(name=dp.get("Name", ""), file_name=dp.get("File", ""),
                                           columns=[c.get("Name", "") for c in dp.findall("DataPoolColumn")]))
        elif child.tag == "Command":
            entries.append(_parse_command(child))
        elif child.tag == "IncludedTestCase":
            entries.append(IncludedTestCase(name=child.get("Name", ""),
                                            commands=[_parse_command(c) for c in child.findall("Command")]))
    return Outline(script_name=root.get("Name", ""), entries=entries, data_pools=data_pools)


def parse_outline(content: Union[str, bytes]) -> Outline:
    try:
        root = ET.fromstring(content)
    except ET.ParseError as e:
        logger.error(f"Outline document is not valid XML: {e}")
        raise MalformedOutlineError(f"Outline document is not valid XML: {e}") from e
    return outline_from_element(root)


def load_outline(path: str) -> Outline:
    with open(path, "rb") as f:
        outline = parse_outline(f.read())
    logger.info(f"Loaded outline '{outline.script_name}' from {path}")
    return outline


def save_outline(outline: Outline, path: str) -> str:
    with open(path, "w", encoding="utf-8") as f:
        f.write(outline_to_xml(outline))
    return path


def outline_to_json(outline: Outline) -> str:
    return json.dumps({"outline": outline.to_dict()}, indent=2)


def outline_to_yaml(outline: Outline) -> str:
    return yaml.dump({"outline": outline.to_dict()}, allow_unicode=True, sort_keys=False)
