# Copyright (c) 2020 Intel Corporation
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.


"""
Yaml based configuration of cgmon components.

Every class registered with `register` can be created from configuration
file using a tag with its name, e.g.:

    runner: !MonitorRunner
        interval: 5
        storage: !LogStorage
            output_filename: /tmp/cgmon.prom

Values given in the file are validated against type annotations of class
constructor before the instance is initialized (see `assure_type`).
"""
import functools
import inspect
import logging
import types
import typing
from os.path import exists, isabs, split  # direct target import for mocking purposes in test_main
from ruamel import yaml
from ruamel.yaml.constructor import ConstructorError
from ruamel.yaml.nodes import Node, ScalarNode
from typing import Any

from cgmon import logger

_yaml = yaml.YAML(typ='safe')

log = logging.getLogger(__name__)

_registered_tags = set()


class ConfigLoadError(Exception):
    """Error raised for any of improper config file. """
    pass


class ValidationError(Exception):
    """Value does not match type annotation of constructor argument."""
    pass


class SemanticType:
    """Base for annotations that validate user input beyond its python type."""

    @classmethod
    def assure(cls, value):
        raise NotImplementedError


def _assure_instance(value, *base_types):
    if not isinstance(value, base_types):
        raise ValidationError('Invalid type: %s. Type must be one of the following: %s' % (
            type(value), base_types))


def Str(max_size=400):
    class _Str(SemanticType):
        @classmethod
        def assure(cls, value):
            _assure_instance(value, str)
            if len(value) > max_size:
                raise ValidationError('Given str is too long. Max allowed length is %i. '
                                      'Got %i' % (max_size, len(value)))
    return _Str


def Numeric(min_value, max_value):
    class _Numeric(SemanticType):
        @classmethod
        def assure(cls, value):
            # bool is an int subclass, but "interval: true" is not a number.
            if isinstance(value, bool):
                raise ValidationError('Invalid type: %s. Number expected.' % type(value))
            _assure_instance(value, int, float)
            if value < min_value:
                raise ValidationError('Minimum value is %s. Got %s.' % (min_value, value))
            if value > max_value:
                raise ValidationError('Maximum value is %s. Got %s.' % (max_value, value))
    return _Numeric


def Path(absolute=False, max_size=400):
    class _Path(SemanticType):
        @classmethod
        def assure(cls, value):
            Str(max_size).assure(value)
            head, tail = split(value)
            while head and tail:
                if '..' in (head, tail):
                    raise ValidationError('You are trying to access parent directory by '
                                          'using \'..\' expression which is not allowed.')
                head, tail = split(head)
            if absolute and not isabs(value):
                raise ValidationError('Absolute path is obligatory, got %r.' % value)
    return _Path


def _assure_optional_type(value, expected_type):
    """Only Optional[X] (Union[X, None]) is supported."""
    expected_types = [t for t in expected_type.__args__ if t is not type(None)]
    if len(expected_types) != 1:
        raise ValidationError('unsupported union type %r' % expected_type)
    if value is not None:
        assure_type(value, expected_types[0])


def _assure_dict_type(value, expected_type):
    _assure_instance(value, dict)
    expected_key_type, expected_value_type = expected_type.__args__
    for key, item_value in value.items():
        try:
            assure_type(key, expected_key_type)
            assure_type(item_value, expected_value_type)
        except ValidationError as e:
            raise ValidationError('invalid item %r: %r in dict: %s' % (key, item_value, e)) \
                from e


def assure_type(value, expected_type):
    """Raises ValidationError if value does not match annotation.

    Supported annotations: simple types (e.g. int, bool or a component base class),
    semantic types (Str, Numeric, Path), Optional[X] and Dict[K, V].
    """
    if expected_type is inspect.Parameter.empty:
        raise ValidationError('missing type declaration!')

    origin = getattr(expected_type, '__origin__', None)
    if origin is typing.Union:
        _assure_optional_type(value, expected_type)
        return
    if origin is dict:
        _assure_dict_type(value, expected_type)
        return
    if origin is not None:
        raise ValidationError('unsupported generic type %r' % expected_type)

    # Semantic type used without parameters e.g. "Str" instead of "Str()".
    if isinstance(expected_type, types.FunctionType):
        expected_type = expected_type()

    if issubclass(expected_type, SemanticType):
        expected_type.assure(value)
    elif not isinstance(value, expected_type):
        raise ValidationError(
            'improper type (got=%r expected=%r)!' % (type(value), expected_type))


def _constructor(loader, node: Node, cls: type):
    """Creates instance of registered class in two steps (ruamel supports generator
    constructors): blank instance is yielded first, so the whole document can refer to
    it, then it is initialized with already constructed (deep) arguments.
    """
    instance = object.__new__(cls)
    log.log(logger.TRACE, 'construct %s', cls.__name__)

    if isinstance(node, ScalarNode):
        if node.value:
            log.warning('Value %r for class %r ignored!', node.value, cls.__name__)
        arguments = {}
    else:
        arguments = loader.construct_mapping(node, deep=True)

    signature = inspect.signature(cls.__init__)
    for name, value in arguments.items():
        parameter = signature.parameters.get(name)
        if parameter is None:
            # Unknown arguments are reported by __init__ itself.
            continue
        try:
            assure_type(value, parameter.annotation)
        except ValidationError as e:
            raise ConfigLoadError('Invalid value %r%s for field %r in class %r: %s' % (
                value, node.start_mark, name, cls.__name__, e)) from e

    yield instance

    try:
        instance.__init__(**arguments)
    except TypeError as e:
        raise ConfigLoadError(
            'Cannot instantiate %r%s with arguments=%r (constructor signature is: %s)' % (
                cls.__name__, node.start_mark, arguments, signature)) from e
    except Exception as e:
        raise ConfigLoadError(
            'Cannot instantiate %r%s with arguments=%r'
            '(unexpected error=%s! run -l debug for details)' % (
                cls.__name__, node.start_mark, arguments, e)) from e

    log.log(logger.TRACE, '%s(0x%x)=%r', cls.__name__, id(instance), vars(instance))


def register(cls):
    """Registers class, so it can be created from yaml with '!ClassName' tag.
    Can be used as decorator."""
    log.log(logger.TRACE, 'registered class %r', cls.__name__)
    _yaml.constructor.add_constructor('!%s' % cls.__name__,
                                      functools.partial(_constructor, cls=cls))
    _registered_tags.add(cls.__name__)
    return cls


def _parse(yaml_body) -> Any:
    try:
        return _yaml.load(yaml_body)
    except ConstructorError as e:
        raise ConfigLoadError(
            '%s %s. ' % (e.problem, e.problem_mark) +
            'Available tags are: %s' % (', '.join(sorted(_registered_tags)))
        ) from e


def load_config(filename: str) -> Any:
    """Returns objects created from given yaml file."""
    if not exists(filename):
        raise ConfigLoadError('Cannot find configuration file: %r' % filename)
    with open(filename) as f:
        return _parse(f)
