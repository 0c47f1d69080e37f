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
Things requiring boto3 import

Importing boto3 pulls in the botocore session and loaders, which commands like
"awssh version" or "awssh cache-clean" never use. This module is only imported
lazily from awssh.api.AwsshCtx, once the EC2 API is actually needed.
"""
import typing as t

import boto3

__all__ = ["ec2_client", "fetch_running_instances", "fetch_vpcs"]

# Only running instances can be connected to. This filter is applied by the
# API, so the other states are never transferred at all.
RUNNING_FILTER = [{"Name": "instance-state-name", "Values": ["running"]}]


def ec2_client(region: str, profile: t.Optional[str] = None) -> t.Any:
    session = boto3.session.Session(profile_name=profile, region_name=region)
    return session.client("ec2")


def fetch_running_instances(client: t.Any) -> t.List[t.Dict[str, t.Any]]:
    """
    Return the raw description of every running instance, across all pages
    and reservations.
    """
    instances = []
    paginator = client.get_paginator("describe_instances")
    for page in paginator.paginate(Filters=RUNNING_FILTER):
        for reservation in page.get("Reservations", []):
            instances.extend(reservation.get("Instances", []))
    return instances


def fetch_vpcs(client: t.Any) -> t.List[t.Dict[str, t.Any]]:
    vpcs = []
    paginator = client.get_paginator("describe_vpcs")
    for page in paginator.paginate():
        vpcs.extend(page.get("Vpcs", []))
    return vpcs
