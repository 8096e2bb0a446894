"""Tests for the command line front-end."""
from unittest.mock import AsyncMock, patch

from dictionary_fill.app_config import AIConfig
from dictionary_fill.cli import build_parser, main, options_from_args
from dictionary_fill.fill import FillReport


def test_arguments_map_to_fill_options():
    args = build_parser().parse_args([
        '--source-locale', 'en',
        '--output-locales', 'fr', 'es',
        '--mode', 'complete',
        '--keys', 'home',
        '--excluded-keys', 'about',
        '--git', 'diff',
        '--git-base-ref', 'main',
        '--model', 'gpt-4o',
        '--concurrency', '2',
        '--build',
    ])

    options = options_from_args(args)

    assert options.source_locale == 'en'
    assert options.output_locales == ['fr', 'es']
    assert options.mode == 'complete'
    assert options.keys == ['home']
    assert options.excluded_keys == ['about']
    assert options.git_options.mode == ['diff']
    assert options.git_options.base_ref == 'main'
    assert options.git_options.current_ref == 'HEAD'
    assert options.ai_options == {'model': 'gpt-4o'}
    assert options.nb_concurrent_translations == 2
    assert options.build is True


def test_defaults():
    options = options_from_args(build_parser().parse_args([]))

    assert options.mode == 'review'
    assert options.git_options is None
    assert options.ai_options is None
    assert options.file is None


def test_dry_run_flag_reaches_the_configuration(make_config):
    with patch('dictionary_fill.cli.load_app_config', return_value=make_config()):
        with patch('dictionary_fill.cli.fill', new_callable=AsyncMock, return_value=FillReport()) as mock_fill:
            exit_code = main(['--dry-run'])

    assert exit_code == 0
    config = mock_fill.await_args.args[1]
    assert config.dry_run is True


def test_configuration_error_exits_with_1(make_config):
    with patch('dictionary_fill.cli.load_app_config', return_value=make_config(ai=AIConfig())):
        assert main(['--mode', 'complete']) == 1


def test_invalid_concurrency_exits_with_2():
    assert main(['--concurrency', '0']) == 2
