#!/usr/bin/env python3
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
import os

import pytest

from awssh.api import AwsInstance
from awssh.api import AwsshCtx
from awssh.api import AwsVpc
from awssh.template import FqdnTemplate
from awssh.util import ConfigError
from awssh.util import TemplateError
from tests.testing.factories import config_factory
from tests.testing.fake_aws import FakeEC2


@pytest.fixture
def vpc():
    return AwsVpc(
        vpc_id="vpc-789",
        tags={"Name": "production", "ShortName": "prod", "Env": "live"},
        name="production",
        short_name="prod",
    )


@pytest.fixture
def inst(vpc):
    return AwsInstance(
        instance_id="i-123",
        tags={"Name": "web-1", "Role": "web,api", "Hostname": "w1"},
        name="web-1",
        roles=["web", "api"],
        vpc_id="vpc-789",
        vpc=vpc,
    )


def test_instance_fields():
    inst = AwsInstance(
        instance_id="foo123", tags={}, name="fooName", vpc_id="bar456"
    )
    tmpl = "{{.InstanceId}}.{{.VpcId}}.aws.example.com"
    assert inst.fqdn(tmpl) == "foo123.bar456.aws.example.com"
    assert inst.fqdn("{{.Name}}.aws.example.com") == "fooName.aws.example.com"


@pytest.mark.parametrize(
    "text,expected",
    [
        ("{{.Name}}", "web-1"),
        ("{{.InstanceId}}", "i-123"),
        ("{{.Roles}}", "web,api"),
        ("{{.Vpc.VpcId}}", "vpc-789"),
        ("{{.Vpc.Name}}", "production"),
        ("{{.Name}}.{{.Vpc.ShortName}}.example.com", "web-1.prod.example.com"),
        ("{{.Tags.Hostname}}.example.com", "w1.example.com"),
        ("{{.Vpc.Tags.Env}}", "live"),
        ("{{ .Name }}", "web-1"),
        ("static.example.com", "static.example.com"),
        ("", ""),
        ("{{.Name}}{{.Name}}", "web-1web-1"),
        ("a}}b", "a}}b"),
    ],
)
def test_render(inst, text, expected):
    assert FqdnTemplate(text).render(inst) == expected


def test_missing_tags(inst):
    assert FqdnTemplate("x{{.Tags.Missing}}y").render(inst) == "xy"
    assert FqdnTemplate("x{{.Vpc.Tags.Missing}}y").render(inst) == "xy"


def test_no_roles(inst):
    inst.roles = []
    assert FqdnTemplate("{{.Roles}}").render(inst) == ""


def test_no_vpc(inst):
    inst.vpc = None
    tmpl = FqdnTemplate("{{.Name}}.{{.VpcId}}")
    assert tmpl.render(inst) == "web-1.vpc-789"
    for text in ["{{.Vpc.Name}}", "{{.Vpc.ShortName}}", "{{.Vpc.Tags.Env}}"]:
        with pytest.raises(TemplateError, match="no VPC attached"):
            FqdnTemplate(text).render(inst)


@pytest.mark.parametrize(
    "text,message",
    [
        ("{{.Bogus}}", "unknown field"),
        ("{{.Vpc.Bogus}}", "unknown field"),
        ("{{.Tags.}}", "unknown field"),
        ("{{.Vpc}}", "unknown field"),
        ("{{.Name", "unclosed action"),
        ("{{.Name}}.{{", "unclosed action"),
        ("{{Name}}", "unsupported action"),
        ("{{printf \"%s\" .Name}}", "unsupported action"),
        ("{{}}", "unsupported action"),
    ],
)
def test_invalid(text, message):
    with pytest.raises(TemplateError, match=message):
        FqdnTemplate(text)


def test_template_error_is_config_error():
    with pytest.raises(ConfigError):
        FqdnTemplate("{{.Bogus}}")


def test_ctx_rejects_bad_template(tmp_path):
    config = config_factory(
        template_fqdn="{{.Nmae}}.example.com", cache_dir=str(tmp_path)
    )
    ctx = AwsshCtx(config)
    ctx._ec2 = FakeEC2()
    with pytest.raises(TemplateError):
        ctx.read_instances()
    ctx.ec2.describe_instances.assert_not_called()
    ctx.ec2.describe_vpcs.assert_not_called()
    assert os.listdir(str(tmp_path)) == []


def test_repr():
    assert repr(FqdnTemplate("{{.Name}}")) == "FqdnTemplate('{{.Name}}')"
