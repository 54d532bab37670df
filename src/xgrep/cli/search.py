"""CLI search command for xgrep"""

import sys

import click

from xgrep.__version__ import __version__
from xgrep.models import MatchRecord
from xgrep.regex import PatternError, compile_pattern_set
from xgrep.scanner import DEFAULT_CORES, scan_files


def make_emitter(output_json: bool, colorize: bool):
    """
    Build the callback that prints each match.

    Every record goes out in a single ``click.echo`` call, so records from
    different worker threads never split each other.
    """
    if output_json:

        def emit(record: MatchRecord) -> None:
            click.echo(record.model_dump_json())

    else:

        def emit(record: MatchRecord) -> None:
            click.echo(record.to_cli(), color=colorize or None)

    return emit


@click.command()
@click.argument('files', nargs=-1, type=str, metavar='FILES...')
@click.option('--namespace', '-namespace', 'namespace', default='', help="Regex to match a namespace")
@click.option('--tag', '-tag', 'tag', default='', help="Regex to match a tag")
@click.option('--content', '-content', 'content', default='', help="Regex to match content")
@click.option(
    '--attr',
    '-attr',
    'attrs',
    multiple=True,
    metavar='KEY=VALUE',
    help="Regex pair to match an attribute name and value (can be specified multiple times)",
)
@click.option(
    '--cores',
    '-cores',
    'cores',
    type=click.IntRange(min=1),
    default=DEFAULT_CORES,
    show_default=True,
    help="Number of files scanned concurrently",
)
@click.option('--color', '-color', 'color', is_flag=True, help="Enable color highlight")
@click.option('--json', '-json', 'output_json', is_flag=True, help="Output matches as JSON lines")
@click.version_option(version=__version__, prog_name='xgrep')
@click.pass_context
def search_command(ctx, files, namespace, tag, content, attrs, cores, color, output_json):
    """
    Search XML files for elements matching every given filter.

    An element is reported when its namespace, tag, attributes and content
    all match. Filters left out match everything. Regexes are searched, not
    anchored: add ^ and $ to match whole values.

    \b
    Examples:
        xgrep -tag '^item$' feed.xml
        xgrep -namespace atom -tag link -attr 'rel=^alternate$' *.xml
        xgrep -attr 'id=\\d+' -attr 'class=active' -content error -color data/*.xml
        xgrep -tag title --json *.xml

    \b
    Environment:
        XGREP_CORES       default for -cores
        XGREP_LOG_LEVEL   log level for warnings and progress (default WARNING)
    """
    if not files:
        click.echo(ctx.get_help())
        sys.exit(0)

    try:
        patterns = compile_pattern_set(namespace=namespace, tag=tag, content=content, attributes=attrs)
    except PatternError as e:
        click.echo(f"❌ Error: {e}", err=True)
        sys.exit(1)

    colorize = color and not output_json
    scan_files(list(files), patterns, make_emitter(output_json, colorize), cores=cores, colorize=colorize)
    sys.exit(0)


if __name__ == '__main__':
    search_command()
