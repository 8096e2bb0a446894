"""Unit tests for the auto_fill module."""
import os

from dictionary_fill.auto_fill import (
    AutoFillData,
    format_auto_fill_data,
    get_file_name,
    render_template,
    transform_uri_to_absolute_path,
)


class TestGetFileName:

    def test_strips_last_two_extensions(self):
        assert get_file_name('/src/components/home/index.content.json') == 'index'
        assert get_file_name('./test.content.tsx') == 'test'

    def test_keeps_inner_dots(self):
        assert get_file_name('/src/my.page.content.json') == 'my.page'


class TestRenderTemplate:

    def test_replaces_every_occurrence(self):
        assert render_template('{{key}}/{{key}}.json', {'key': 'home'}) == 'home/home.json'

    def test_unknown_placeholders_are_left_literally(self):
        assert render_template('{{key}}.{{unknown}}.json', {'key': 'home'}) == 'home.{{unknown}}.json'

    def test_none_values_are_left_literally(self):
        assert render_template('{{key}}.{{locale}}.json', {'key': 'home', 'locale': None}) == 'home.{{locale}}.json'


class TestTransformUriToAbsolutePath:

    def test_absolute_style_resolves_against_base_dir(self):
        assert transform_uri_to_absolute_path('/i18n/home.json', '/project/src/home.content.json', '/project') == \
            os.path.normpath('/project/i18n/home.json')

    def test_relative_resolves_against_declaration_dir(self):
        assert transform_uri_to_absolute_path('./home.fr.json', '/project/src/home.content.json', '/project') == \
            os.path.normpath('/project/src/home.fr.json')

    def test_other_forms_yield_the_source_path(self):
        assert transform_uri_to_absolute_path('home.fr.json', '/project/src/home.content.json', '/project') == \
            '/project/src/home.content.json'


class TestFormatAutoFillData:

    def test_falsy_auto_fill_gives_nothing(self, app_config):
        source = os.path.join(app_config.base_dir, 'home.content.json')
        assert format_auto_fill_data(None, ['fr'], source, 'home', app_config) == []
        assert format_auto_fill_data(False, ['fr'], source, 'home', app_config) == []
        assert format_auto_fill_data('', ['fr'], source, 'home', app_config) == []

    def test_true_on_json_source_avoids_overwriting_it(self, app_config):
        source = os.path.join(app_config.base_dir, 'src', 'home.content.json')

        result = format_auto_fill_data(True, ['fr', 'es'], source, 'home', app_config)

        assert result == [AutoFillData(
            ['fr', 'es'],
            os.path.join(app_config.base_dir, 'src', 'home.content.fill.json'),
            is_per_locale=False,
        )]
        assert result[0].file_path != source

    def test_true_on_non_json_source_replaces_extension(self, app_config):
        source = os.path.join(app_config.base_dir, 'src', 'home.content.tsx')

        result = format_auto_fill_data(True, ['fr'], source, 'home', app_config)

        assert result[0].file_path == os.path.join(app_config.base_dir, 'src', 'home.content.json')

    def test_locale_template_gives_one_file_per_locale(self, app_config):
        source = os.path.join(app_config.base_dir, 'src', 'home.content.json')

        result = format_auto_fill_data('./{{fileName}}.{{locale}}.json', ['fr', 'es'], source, 'home', app_config)

        assert result == [
            AutoFillData(['fr'], os.path.join(app_config.base_dir, 'src', 'home.fr.json'), is_per_locale=True),
            AutoFillData(['es'], os.path.join(app_config.base_dir, 'src', 'home.es.json'), is_per_locale=True),
        ]

    def test_template_without_locale_gives_one_shared_file(self, app_config):
        source = os.path.join(app_config.base_dir, 'src', 'home.content.json')

        result = format_auto_fill_data('/i18n/{{key}}.json', ['fr', 'es'], source, 'home', app_config)

        assert result == [
            AutoFillData(['fr', 'es'], os.path.join(app_config.base_dir, 'i18n', 'home.json'), is_per_locale=False)
        ]

    def test_object_form_groups_locales_sharing_a_path(self, app_config):
        source = os.path.join(app_config.base_dir, 'src', 'home.content.json')
        auto_fill = {
            'fr': './shared.json',
            'es': './shared.json',
            'de': './{{key}}.de.json',
            'it': '',
        }

        result = format_auto_fill_data(auto_fill, ['fr', 'es', 'de', 'it'], source, 'home', app_config)

        assert result == [
            AutoFillData(['fr', 'es'], os.path.join(app_config.base_dir, 'src', 'shared.json'), is_per_locale=True),
            AutoFillData(['de'], os.path.join(app_config.base_dir, 'src', 'home.de.json'), is_per_locale=True),
        ]
