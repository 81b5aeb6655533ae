import pytest

from rwstruct.args import Arg, Arguments, build_arguments
from rwstruct.exceptions import SchemaError


DECLARED = (Arg('count'), Arg('inner', None), Arg('flags', []))


def test_named():
    args = build_arguments(DECLARED, named={'count': 3})

    assert args == {'count': 3, 'inner': None, 'flags': []}
    assert args.count == 3


def test_positional():
    args = build_arguments(DECLARED, positional=(3, 'miao'))

    assert args == {'count': 3, 'inner': 'miao', 'flags': []}


def test_raw_is_forwarded():
    raw = Arguments(whatever=1)

    assert build_arguments(DECLARED, raw=raw) is raw


def test_defaults_are_not_shared():
    first = build_arguments(DECLARED, named={'count': 1})
    first.flags.append(1)

    second = build_arguments(DECLARED, named={'count': 1})

    assert second.flags == []


def test_missing_required():
    with pytest.raises(SchemaError):
        build_arguments(DECLARED)


def test_unknown_name():
    with pytest.raises(SchemaError):
        build_arguments(DECLARED, named={'count': 1, 'size': 2})


def test_too_many_positional():
    with pytest.raises(SchemaError):
        build_arguments(DECLARED, positional=(1, 2, 3, 4))


def test_arguments_attribute():
    args = Arguments()
    args.count = 2

    assert args['count'] == 2

    with pytest.raises(AttributeError):
        args.missing
