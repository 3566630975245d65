#!/usr/bin/env python3
"""
Name: choose
Description: choose sections from each line of files
Author: Ryan Geary
License: gpl

Selects fields from every input line, like cut(1) or a tiny awk program,
with a richer selection language:

    N        a single field
    A:B      fields A through B, inclusive (exclusive with -x)
    A..B     fields A through B, exclusive of B
    A..=B    fields A through B, inclusive of B

Either end of a range may be omitted, either end may be negative (counted
from the end of the line), and a range whose end comes before its start is
printed in reverse order.
"""

import sys
import os
import re
import copy
import argparse
import fileinput
from enum import Enum
from itertools import islice

__version__ = "1.3"

# Exit statuses
EX_SUCCESS = 0
EX_BAD_SEPARATOR = 1
EX_BAD_CHOICE = 2
EX_NO_INPUT = 3
EX_WRITE_FAILURE = 4

# Indices are confined to a signed machine word.
INDEX_MAX = sys.maxsize
INDEX_MIN = -sys.maxsize - 1

RANGE_RE = re.compile(r'^(-?\d*)(:|\.\.=?)(-?\d*)$', re.ASCII)
SINGLE_RE = re.compile(r'^[+-]?\d+$', re.ASCII)

# Characters that mean something to the regex engine when they stand alone.
REGEX_METACHARACTERS = frozenset('.^$*+?{}[]\\|()')

ESCAPES = {'n': '\n', 't': '\t', 'r': '\r', '\\': '\\', '0': '\0'}
ESCAPE_RE = re.compile(r'\\([ntr\\0])')


class ConfigError(ValueError):
    """A problem with the command line, detected before any input is read."""
    exit_status = EX_BAD_CHOICE


class ChoiceError(ConfigError):
    """A choice argument that does not follow the selection syntax."""


class SeparatorError(ConfigError):
    """A field separator that is not a usable regular expression."""
    exit_status = EX_BAD_SEPARATOR


class OutputError(Exception):
    """Writing to the output failed for a reason other than a closed pipe."""
    def __init__(self, error):
        super().__init__(error)
        self.error = error


def _debug(message, enabled):
    if enabled:
        sys.stderr.write(message)


# --- Choices ---

class RangeKind(Enum):
    SINGLE = 'single'
    EXCLUSIVE_RANGE = '..'
    INCLUSIVE_RANGE = '..='
    COLON_RANGE = ':'


class Strategy(Enum):
    FORWARD_SCAN = 'forward scan'
    BOUNDED_REVERSE_SCAN = 'bounded reverse scan'
    MATERIALIZED_RESOLVE = 'materialized resolve'


class RangeSpec:
    """
    One parsed choice.

    The kind, the two derived flags and the resolution strategy are decided
    here and never change. Adjustments for exclusive ranges and one-indexing
    produce a new RangeSpec through with_bounds(), which moves the bounds but
    carries the flags over untouched: a range is reversed or negative
    according to what the user typed, not according to where the adjustment
    happened to land it.
    """
    def __init__(self, start: int, end: int, kind: RangeKind):
        self.start = start
        self.end = end
        self.kind = kind
        self.negative_index = start < 0 or end < 0
        self.reversed = end < start and not (start >= 0 and end < 0)

        if self.negative_index:
            self.strategy = Strategy.MATERIALIZED_RESOLVE
        elif self.reversed:
            self.strategy = Strategy.BOUNDED_REVERSE_SCAN
        else:
            self.strategy = Strategy.FORWARD_SCAN

    def with_bounds(self, start: int, end: int) -> 'RangeSpec':
        spec = copy.copy(self)
        spec.start = start
        spec.end = end
        return spec

    def resolve(self, tokens):
        """Returns an iterator over the tokens this choice selects, in output order."""
        return _RESOLVERS[self.strategy](self, tokens)

    def __repr__(self):
        return (f"RangeSpec(start={self.start}, end={self.end}, kind={self.kind.name}, "
                f"negative_index={self.negative_index}, reversed={self.reversed})")


def _parse_index(text, default, what, src):
    if not text:
        return default
    if text == '-':
        raise ChoiceError(f"failed to parse range {what}: '{src}'")
    value = int(text)
    if not INDEX_MIN <= value <= INDEX_MAX:
        raise ChoiceError(f"failed to parse range {what}: '{text}' is out of range")
    return value


def parse_choice(src: str) -> RangeSpec:
    """
    Parses a choice argument ('3', '-2', '1:4', '..5', '-3..=-1', ...).

    An omitted start means the beginning of the line and an omitted end the
    end of the line.
    """
    match = RANGE_RE.match(src)
    if not match:
        if not SINGLE_RE.match(src):
            raise ChoiceError(f"failed to parse choice argument: '{src}'")
        value = int(src)
        if not INDEX_MIN <= value <= INDEX_MAX:
            raise ChoiceError(f"failed to parse choice argument: '{src}' is out of range")
        return RangeSpec(value, value, RangeKind.SINGLE)

    start_str, separator, end_str = match.groups()
    start = _parse_index(start_str, 0, 'start', src)
    end = _parse_index(end_str, INDEX_MAX, 'end', src)
    return RangeSpec(start, end, RangeKind(separator))


def check_index(value):
    """Rejects the one index whose magnitude cannot be represented."""
    if value <= INDEX_MIN:
        raise ConfigError(
            f"Minimum index value supported is INDEX_MIN + 1 ({INDEX_MIN + 1})")


def adjust_choice(spec, exclusive=False, one_indexed=False):
    """
    Rewrites the bounds of a freshly parsed choice for the global options.

    '..' ranges always exclude their end and ':' ranges do under -x; a
    reversed range excludes its start instead, the end it walks towards.
    One-indexing then shifts every positive bound down.
    """
    start, end = spec.start, spec.end

    if spec.kind == RangeKind.EXCLUSIVE_RANGE or (exclusive and spec.kind == RangeKind.COLON_RANGE):
        if spec.reversed:
            start -= 1
        else:
            end -= 1

    if one_indexed:
        if start > 0:
            start -= 1
        if end > 0:
            end -= 1

    check_index(start)
    check_index(end)
    return spec.with_bounds(start, end)


# --- Resolution ---

def _forward_scan(spec, tokens):
    # islice only accepts stops up to sys.maxsize
    stop = None if spec.end >= INDEX_MAX else spec.end + 1
    if stop is not None and stop <= spec.start:
        return iter(())
    return islice(tokens, spec.start, stop)


def _bounded_reverse_scan(spec, tokens):
    width = spec.start - spec.end + 1
    stack = []
    for token in islice(tokens, spec.end, None):
        stack.append(token)
        if len(stack) >= width:
            break
    return reversed(stack)


def negative_bounds(spec, length):
    """
    Converts the bounds of a choice with a negative index into absolute
    positions for a line of the given length.

    Returns a (start, end) pair, both clamped into the line, or None when
    the choice cannot select anything from the line.
    """
    if length == 0:
        return None

    check_index(spec.start)
    last = length - 1
    start_abs = abs(spec.start)

    if spec.kind == RangeKind.SINGLE:
        if start_abs <= length:
            idx = length - start_abs
            return idx, idx
        return None

    check_index(spec.end)
    end_abs = abs(spec.end)

    if spec.start >= 0:
        end = max(length - end_abs, 0)
        return min(spec.start, last), min(end, last)

    if spec.end >= 0:
        start = max(length - start_abs, 0)
        return min(start, last), min(spec.end, last)

    # Both ends count from the back; entirely before the line is nothing.
    if start_abs > length and end_abs > length:
        return None
    start = max(length - start_abs, 0)
    end = max(length - end_abs, 0)
    return min(start, last), min(end, last)


def _materialized_resolve(spec, tokens):
    tokens = list(tokens)
    bounds = negative_bounds(spec, len(tokens))
    if bounds is None:
        return iter(())

    start, end = bounds
    if end > start:
        return iter(tokens[start:end + 1])
    if spec.start < 0:
        return reversed(tokens[end:start + 1])
    if start == end and spec.start < len(tokens):
        return iter(tokens[start:start + 1])
    return iter(())


_RESOLVERS = {
    Strategy.FORWARD_SCAN: _forward_scan,
    Strategy.BOUNDED_REVERSE_SCAN: _bounded_reverse_scan,
    Strategy.MATERIALIZED_RESOLVE: _materialized_resolve,
}


# --- Splitting ---

def literal_separator(pattern):
    """
    Returns the single character a separator pattern stands for, or None if
    the pattern really needs the regex engine.
    """
    if len(pattern) == 1 and pattern not in REGEX_METACHARACTERS:
        return pattern
    if len(pattern) == 2 and pattern[0] == '\\' and not pattern[1].isalnum() and pattern[1].isascii():
        return pattern[1]
    return None


def _split_literal(line, char):
    pos = 0
    while True:
        found = line.find(char, pos)
        if found < 0:
            yield line[pos:]
            return
        yield line[pos:found]
        pos = found + 1


def _split_pattern(line, regex):
    pos = 0
    for match in regex.finditer(line):
        yield line[pos:match.start()]
        pos = match.end()
    yield line[pos:]


class Separator:
    """
    Splits lines into fields.

    Owns its compiled pattern. Greedy splitting (the default) drops the empty
    fields produced by consecutive separators; non-greedy splitting keeps
    them.
    """
    def __init__(self, pattern=None, non_greedy=False, character_wise=False):
        self.pattern = pattern
        self.non_greedy = non_greedy
        self.character_wise = character_wise
        self.literal = None
        self.regex = None

        if pattern is None:
            self.regex = re.compile(r'\s')
            return

        self.literal = literal_separator(pattern)
        if self.literal is None:
            try:
                self.regex = re.compile(pattern)
            except re.error as e:
                raise SeparatorError(f"Failed to compile regular expression: {e}") from e

    def split(self, line):
        """Returns an iterator over the fields of one line."""
        if self.character_wise:
            return iter(line)

        if self.literal is not None:
            fields = _split_literal(line, self.literal)
        else:
            fields = _split_pattern(line, self.regex)

        if self.non_greedy:
            return fields
        return (field for field in fields if field)

    def __repr__(self):
        mode = 'characters' if self.character_wise else 'literal' if self.literal is not None else 'regex'
        return f"Separator(pattern={self.pattern!r}, mode={mode}, non_greedy={self.non_greedy})"


# --- Output ---

def process_escapes(text):
    r"""Expands \n, \t, \r, \\ and \0; any other backslash is left alone."""
    return ESCAPE_RE.sub(lambda m: ESCAPES[m.group(1)], text)


class OutputEmitter:
    """
    Writes chosen fields joined by the output separator.

    Rather than looking ahead for a following field, the emitter remembers
    whether anything has been written on the current line and puts the
    separator in front of every field but the first. Empty fields print
    nothing, so they never produce a doubled or leading separator.
    """
    def __init__(self, stream, separator=' ', line_buffered=False):
        self.stream = stream
        self.separator = separator
        self.line_buffered = line_buffered
        self.first_of_line = True

    def _write(self, text):
        try:
            self.stream.write(text)
        except BrokenPipeError:
            raise
        except OSError as e:
            raise OutputError(e) from e

    def write_choice(self, token):
        if not token:
            return
        if not self.first_of_line:
            self._write(self.separator)
        self._write(token)
        self.first_of_line = False

    def end_line(self):
        self._write('\n')
        self.first_of_line = True
        if self.line_buffered:
            self.flush()

    def flush(self):
        try:
            self.stream.flush()
        except BrokenPipeError:
            raise
        except OSError as e:
            raise OutputError(e) from e


# --- Configuration ---

class Config:
    """Everything needed to process lines, built once from the command line."""
    def __init__(self, choices, field_separator=None, exclusive=False, one_indexed=False,
                 non_greedy=False, character_wise=False, output_field_separator=None,
                 input_file=None, debug=False):
        self.exclusive = exclusive
        self.one_indexed = one_indexed
        self.character_wise = character_wise
        self.input_file = input_file
        self.debug = debug
        self.choices = [adjust_choice(c, exclusive, one_indexed) for c in choices]
        self.separator = Separator(field_separator, non_greedy, character_wise)

        if output_field_separator is not None:
            self.output_separator = process_escapes(output_field_separator)
        elif character_wise:
            self.output_separator = ''
        else:
            self.output_separator = ' '

    @classmethod
    def from_args(cls, args):
        return cls(
            args.choices,
            field_separator=args.field_separator,
            exclusive=args.exclusive,
            one_indexed=args.one_indexed,
            non_greedy=args.non_greedy,
            character_wise=args.character_wise,
            output_field_separator=args.output_field_separator,
            input_file=args.input,
            debug=args.debug,
        )

    def __repr__(self):
        return (f"Config(choices={self.choices!r}, separator={self.separator!r}, "
                f"output_separator={self.output_separator!r}, exclusive={self.exclusive}, "
                f"one_indexed={self.one_indexed}, input_file={self.input_file!r})")


# --- Driving ---

def strip_line_ending(line):
    if line.endswith('\n'):
        line = line[:-1]
        if line.endswith('\r'):
            line = line[:-1]
    return line


def process_line(emitter, config, line):
    """Applies every choice, in order, to one input line."""
    line = strip_line_ending(line)
    for choice in config.choices:
        for token in choice.resolve(config.separator.split(line)):
            emitter.write_choice(token)
    emitter.end_line()


def process_stream(emitter, config, stream):
    """Processes every line of a binary stream, decoded as UTF-8."""
    for line in stream:
        process_line(emitter, config, line.decode('utf-8'))
    emitter.flush()


# --- Command line ---

# Short options taking a value, and the long spelling they are rewritten to.
VALUE_OPTIONS = {'f': '--field-separator', 'i': '--input', 'o': '--output-field-separator'}
VALUE_OPTION_RE = re.compile(r'^-[cdxnhV]*([fio])$')
CHOICE_ARG_RE = re.compile(r'^(-?\d*(:|\.\.=?)-?\d*|[+-]?\d+)$', re.ASCII)


def _value_option(arg):
    if arg in VALUE_OPTIONS.values():
        return arg
    match = VALUE_OPTION_RE.match(arg)
    if match:
        return VALUE_OPTIONS[match.group(1)]
    return None


def preprocess_argv(args_list: list) -> list:
    """
    Moves the choices behind a '--' so that negative ones such as '-2' or
    '-3:-1' are never taken for options.

    Options that expect a value are rewritten to '--long=value' so that the
    value survives the move even when it looks like a choice or an option
    itself ('-f :', '-o -', '-o ""').
    """
    options = []
    choices = []
    args = iter(args_list)
    for arg in args:
        if arg == '--':
            choices.extend(args)
            break

        long_option = _value_option(arg)
        if long_option:
            # '-nf' is '-n' followed by '-f'
            if not arg.startswith('--') and len(arg) > 2:
                options.append(arg[:-1])
            value = next(args, None)
            options.append(long_option if value is None else f"{long_option}={value}")
        elif arg.startswith('-') and not CHOICE_ARG_RE.match(arg):
            options.append(arg)
        else:
            choices.append(arg)

    return options + ['--'] + choices


def choice_type(src):
    try:
        return parse_choice(src)
    except ConfigError as e:
        raise argparse.ArgumentTypeError(str(e))


def build_parser():
    parser = argparse.ArgumentParser(
        description="`choose` sections from each line of files.",
        usage="%(prog)s [-cdxn] [--one-indexed] [-f SEP] [-i INPUT] [-o SEP] choice ...",
        epilog="Choices are a, a:b, a..b or a..=b, where a and b are integers. Either end "
               "of a range may be omitted to run to the beginning or end of the line. a:b "
               "is inclusive of b (unless -x), a..b is exclusive of b and a..=b is inclusive of b."
    )
    parser.add_argument('-V', '--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('-c', '--character-wise', action='store_true',
                        help='Choose fields by character number.')
    parser.add_argument('-d', '--debug', action='store_true',
                        help='Activate debug mode.')
    parser.add_argument('-x', '--exclusive', action='store_true',
                        help='Use exclusive ranges, similar to array indexing in many programming languages.')
    parser.add_argument('-f', '--field-separator', metavar='SEP',
                        help='Specify a field separator other than whitespace, as a regular expression.')
    parser.add_argument('-i', '--input', metavar='INPUT',
                        help='Input file. Reads from stdin if not given.')
    parser.add_argument('-n', '--non-greedy', action='store_true',
                        help='Use non-greedy field separators.')
    parser.add_argument('--one-indexed', action='store_true',
                        help='Index from 1 instead of 0.')
    parser.add_argument('-o', '--output-field-separator', metavar='SEP',
                        help='Specify the output field separator (understands \\n, \\t, \\r, \\\\ and \\0).')
    parser.add_argument('choices', nargs='+', type=choice_type, metavar='choice',
                        help='Fields to print.')
    return parser


def parse_args(argv=None):
    if argv is None:
        argv = sys.argv[1:]
    return build_parser().parse_args(preprocess_argv(argv))


def main(argv=None):
    """Parses arguments, then prints the chosen fields of every input line."""
    program_name = os.path.basename(sys.argv[0])
    args = parse_args(argv)

    try:
        config = Config.from_args(args)
    except ConfigError as e:
        print(f"{program_name}: {e}", file=sys.stderr)
        sys.exit(e.exit_status)

    _debug(f"{program_name}: {config!r}\n", config.debug)
    for choice in config.choices:
        _debug(f"{program_name}: {choice!r} -> {choice.strategy.value}\n", config.debug)

    # Interactive readers see each line as soon as it is chosen; a file is
    # written out in blocks.
    emitter = OutputEmitter(sys.stdout, config.output_separator, line_buffered=config.input_file is None)

    try:
        # Binary mode splits on LF only, so a lone CR stays inside its line.
        with fileinput.input(files=(config.input_file or '-',), mode='rb') as stream:
            process_stream(emitter, config, stream)
    except BrokenPipeError:
        # The reader went away (e.g. `choose 0 | head -1`); that is not an error.
        sys.stderr.close()
        sys.exit(EX_SUCCESS)
    except OutputError as e:
        print(f"{program_name}: failed to write to output: {e.error.strerror or e.error}", file=sys.stderr)
        sys.exit(EX_WRITE_FAILURE)
    except OSError as e:
        print(f"{program_name}: cannot open '{e.filename}': {e.strerror}", file=sys.stderr)
        sys.exit(EX_NO_INPUT)
    except UnicodeDecodeError as e:
        print(f"{program_name}: failed to read input: {e}", file=sys.stderr)
        sys.exit(EX_NO_INPUT)

    sys.exit(EX_SUCCESS)


if __name__ == "__main__":
    main()
