# -*- coding: utf-8 -*-
# Copyright (c) 2023, Oracle and/or its affiliates.
#
# The Universal Permissive License (UPL), Version 1.0
#
# Subject to the condition set forth below, permission is hereby granted to any
# person obtaining a copy of this software, associated documentation and/or data
# (collectively the "Software"), free of charge and under any and all copyright
# rights in the Software, and any and all patent rights owned or freely
# licensable by each licensor hereunder covering either (i) the unmodified
# Software as contributed to or provided by such licensor, or (ii) the Larger
# Works (as defined below), to deal in both
#
# (a) the Software, and
# (b) any piece of software and/or hardware listed in the
#     lrgrwrks.txt file if one is included with the Software (each a "Larger
#     Work" to which the Software is contributed by such licensors),
#
# without restriction, including without limitation the rights to copy, create
# derivative works of, display, perform, and distribute the Software and make,
# use, sell, offer for sale, import, export, have made, and have sold the
# Software and the Larger Work(s), and to sublicense the foregoing rights on
# either these or other terms.
#
# This license is subject to the following condition: The above copyright notice
# and either this complete permission notice or at a minimum a reference to the
# UPL must be included in all copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.
"""
A tiny interpreter for FQDN templates

Templates use the familiar "{{.Field}}" action syntax, but only a closed set of
fields may be referenced. The template is parsed (and every field checked) when
the FqdnTemplate is created, so a typo is reported once, up front, rather than
once for each instance being rendered.

Supported fields:

    {{.InstanceId}}      {{.Name}}          {{.VpcId}}
    {{.Roles}}           {{.Tags.KEY}}
    {{.Vpc.VpcId}}       {{.Vpc.Name}}      {{.Vpc.ShortName}}
    {{.Vpc.Tags.KEY}}

Missing tags render as the empty string. Roles are joined by commas.
"""
import re
import typing as t

from awssh.util import TemplateError

if t.TYPE_CHECKING:
    from awssh.api import AwsInstance
    from awssh.api import AwsVpc

ACTION_OPEN = "{{"
ACTION_CLOSE = "}}"

_FIELD_EXPR = re.compile(r"^\s*\.([A-Za-z_][\w.:/@+=\-]*)\s*$")

Getter = t.Callable[["AwsInstance"], str]


def _vpc(inst: "AwsInstance", path: str) -> "AwsVpc":
    if inst.vpc is None:
        raise TemplateError(
            f"cannot render .{path}: instance {inst.instance_id} has no "
            "VPC attached"
        )
    return inst.vpc


INSTANCE_FIELDS: t.Dict[str, Getter] = {
    "InstanceId": lambda i: i.instance_id,
    "Name": lambda i: i.name,
    "VpcId": lambda i: i.vpc_id,
    "Roles": lambda i: ",".join(i.roles),
}

VPC_FIELDS: t.Dict[str, Getter] = {
    "Vpc.VpcId": lambda i: _vpc(i, "Vpc.VpcId").vpc_id,
    "Vpc.Name": lambda i: _vpc(i, "Vpc.Name").name,
    "Vpc.ShortName": lambda i: _vpc(i, "Vpc.ShortName").short_name,
}


def _field_getter(path: str) -> Getter:
    if path in INSTANCE_FIELDS:
        return INSTANCE_FIELDS[path]
    if path in VPC_FIELDS:
        return VPC_FIELDS[path]
    if path.startswith("Tags.") and len(path) > len("Tags."):
        key = path[len("Tags.") :]
        return lambda i: i.tags.get(key, "")
    if path.startswith("Vpc.Tags.") and len(path) > len("Vpc.Tags."):
        key = path[len("Vpc.Tags.") :]
        return lambda i: _vpc(i, path).tags.get(key, "")
    raise TemplateError(f'template: unknown field ".{path}"')


class FqdnTemplate:
    """
    A parsed template: a list of literal strings and field getters.
    """

    text: str
    _parts: t.List[t.Union[str, Getter]]

    def __init__(self, text: str) -> None:
        self.text = text
        self._parts = self._parse(text)

    @staticmethod
    def _parse(text: str) -> t.List[t.Union[str, Getter]]:
        parts: t.List[t.Union[str, Getter]] = []
        pos = 0
        while True:
            start = text.find(ACTION_OPEN, pos)
            if start < 0:
                break
            if start > pos:
                parts.append(text[pos:start])
            end = text.find(ACTION_CLOSE, start + len(ACTION_OPEN))
            if end < 0:
                raise TemplateError(
                    f"template: unclosed action at offset {start}: {text!r}"
                )
            action = text[start + len(ACTION_OPEN) : end]
            match = _FIELD_EXPR.match(action)
            if not match:
                raise TemplateError(
                    f"template: unsupported action {{{{{action}}}}}: only "
                    "field references like {{.Name}} are allowed"
                )
            parts.append(_field_getter(match.group(1)))
            pos = end + len(ACTION_CLOSE)
        if pos < len(text):
            parts.append(text[pos:])
        return parts

    def render(self, inst: "AwsInstance") -> str:
        out = []
        for part in self._parts:
            if isinstance(part, str):
                out.append(part)
            else:
                out.append(part(inst))
        return "".join(out)

    def __repr__(self) -> str:
        return f"FqdnTemplate({self.text!r})"
