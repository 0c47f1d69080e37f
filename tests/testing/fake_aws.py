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
"""
Allows us to fake the EC2 client without getting too tied up mocking functions.
"""
import typing as t
from unittest import mock


Page = t.Dict[str, t.Any]


class FakePaginator:
    def __init__(self, method: t.Callable[..., t.List[Page]]) -> None:
        self._method = method

    def paginate(self, **kwargs: t.Any) -> t.Iterator[Page]:
        return iter(self._method(**kwargs))


class FakeEC2:
    """
    Fakes the boto3 EC2 client, but with a bit of smarts.

    Load it up with raw instance and VPC descriptions (see the aws_*_factory
    functions). The describe_* calls are mocks whose side effects return the
    known objects, split into pages of page_size items, so that both the
    results and the call arguments can be checked. Only the paginator
    interface is implemented, since that's all awssh uses.
    """

    def __init__(self, page_size: int = 2) -> None:
        self._instances: t.List[t.Dict[str, t.Any]] = []
        self._vpcs: t.List[t.Dict[str, t.Any]] = []
        self.page_size = page_size

        # Create mocks for each f_ method.
        for key in dir(self):
            if key.startswith("f_"):
                setattr(
                    self, key[2:], mock.Mock(side_effect=getattr(self, key))
                )

    def get_paginator(self, operation: str) -> FakePaginator:
        return FakePaginator(getattr(self, operation))

    def _pages(self, key: str, items: t.List[t.Any]) -> t.List[Page]:
        if not items:
            return [{key: []}]
        n = self.page_size
        return [{key: items[i : i + n]} for i in range(0, len(items), n)]

    def f_describe_instances(
        self, Filters: t.Sequence[t.Dict[str, t.Any]] = ()
    ) -> t.List[Page]:
        instances = self._instances
        for filt in Filters:
            assert filt["Name"] == "instance-state-name", "unsupported filter"
            instances = [
                i for i in instances if i["State"]["Name"] in filt["Values"]
            ]
        # One instance per reservation, like "run-instances --count 1"
        reservations = [
            {"ReservationId": f"r-{n}", "Instances": [i]}
            for n, i in enumerate(instances)
        ]
        return self._pages("Reservations", reservations)

    def f_describe_vpcs(self) -> t.List[Page]:
        return self._pages("Vpcs", self._vpcs)
