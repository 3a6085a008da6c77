from __future__ import annotations

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

from django.core.cache import caches
from django.test import Client, SimpleTestCase, override_settings
from django.urls import reverse

from crosslinker import services
from crosslinker.engine.backend import OpenAIGenerationBackend
from crosslinker.engine.cache import InMemoryCacheService
from crosslinker.engine.config import load_config
from crosslinker.engine.index import InterlinkingEngine
from crosslinker.engine.types import InterlinkingSuggestion
from crosslinker.forms import BidirectionalRequestForm, SuggestionRequestForm
from crosslinker.services import DjangoCacheService, build_cache, to_interlinkable

from tests.chat_server import serve_chat_completions

SOURCE = 'Our refund policy explains the process. Shipping times vary by region.'

TARGETS = [
    {'id': 7, 'type': 'main_page', 'title': 'Refund Policy', 'content': 'Refunds are issued within 14 days.'},
    {'id': 8, 'type': 'main_page', 'title': 'Shipping Information', 'content': 'We ship worldwide.'},
]


def backend_returning(payload) -> SimpleNamespace:
    return SimpleNamespace(generate=AsyncMock(return_value=json.dumps(payload)))


class SuggestionFormTests(SimpleTestCase):
    def form(self, **overrides):
        data = {
            'content': SOURCE,
            'source_title': 'Returns',
            'source_type': 'question',
            'target_contents': TARGETS,
            'limit': 3,
        }
        data.update(overrides)
        return SuggestionRequestForm(data)

    def test_valid_request_normalizes_targets(self) -> None:
        form = self.form()
        self.assertTrue(form.is_valid(), form.errors)
        self.assertFalse(form.is_legacy)
        targets = form.cleaned_data['target_contents']
        self.assertEqual([(item.type, item.id, item.title) for item in targets], [
            ('main_page', 7, 'Refund Policy'),
            ('main_page', 8, 'Shipping Information'),
        ])

    def test_source_content_is_not_stripped(self) -> None:
        form = self.form(content='  padded source  ')
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.cleaned_data['content'], '  padded source  ')

    def test_targets_must_be_objects_with_integer_ids(self) -> None:
        form = self.form(target_contents=[{'id': 'seven', 'type': 'main_page'}])
        self.assertFalse(form.is_valid())
        self.assertIn('integer id', form.errors['target_contents'][0])

        form = self.form(target_contents='not a list')
        self.assertFalse(form.is_valid())

    def test_unknown_source_type_and_limits_are_rejected(self) -> None:
        self.assertFalse(self.form(source_type='blog').is_valid())
        self.assertFalse(self.form(limit=0).is_valid())
        self.assertFalse(self.form(limit=500).is_valid())

    def test_legacy_requests_need_existing_questions(self) -> None:
        form = self.form(source_title='', target_contents=None)
        self.assertFalse(form.is_valid())
        self.assertTrue(form.non_field_errors())

        form = self.form(source_title='', existing_questions=[{'id': 1, 'title': 'Refunds?'}])
        self.assertTrue(form.is_valid(), form.errors)
        self.assertTrue(form.is_legacy)

    def test_bidirectional_form_applies_default_types(self) -> None:
        form = BidirectionalRequestForm({
            'forum_content': [{'id': 4, 'title': 'How do refunds work?', 'content': 'Question body'}],
            'main_site_content': [{'id': 7, 'title': 'Refund Policy', 'content': 'Page body'}],
        })
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.cleaned_data['forum_content'][0].type, 'question')
        self.assertEqual(form.cleaned_data['main_site_content'][0].type, 'main_page')


class InterlinkingViewTests(SimpleTestCase):
    def setUp(self) -> None:
        self.client = Client()
        self.backend = backend_returning({
            'suggestions': [
                {'contentId': 7, 'contentType': 'main_page', 'anchorText': 'refund policy', 'relevanceScore': 90},
                {'contentId': 8, 'contentType': 'main_page', 'anchorText': 'our shipping', 'relevanceScore': 95},
            ]
        })
        services.set_engine(InterlinkingEngine(self.backend, cache=InMemoryCacheService()))

    def tearDown(self) -> None:
        services.set_engine(None)

    def post(self, name: str, payload) -> object:
        return self.client.post(
            reverse(f'crosslinker:{name}'),
            data=json.dumps(payload),
            content_type='application/json',
        )

    def test_suggestions_endpoint_returns_validated_links(self) -> None:
        response = self.post('suggestions', {
            'sourceContent': SOURCE,
            'sourceTitle': 'Returns',
            'sourceType': 'question',
            'targetContents': TARGETS,
            'limit': 3,
        })

        self.assertEqual(response.status_code, 200)
        suggestions = response.json()['suggestions']
        self.assertEqual(len(suggestions), 1)
        self.assertEqual(suggestions[0]['contentId'], 7)
        self.assertEqual(suggestions[0]['anchorText'], 'refund policy')
        self.assertEqual(suggestions[0]['title'], 'Refund Policy')
        self.assertEqual(self.backend.generate.await_count, 1)

    def test_repeat_requests_are_served_from_cache(self) -> None:
        payload = {
            'sourceContent': SOURCE,
            'sourceTitle': 'Returns',
            'sourceType': 'question',
            'targetContents': TARGETS,
        }
        first = self.post('suggestions', payload).json()
        second = self.post('suggestions', payload).json()

        self.assertEqual(first, second)
        self.assertEqual(self.backend.generate.await_count, 1)

    def test_invalid_requests_return_400(self) -> None:
        response = self.client.post(
            reverse('crosslinker:suggestions'),
            data='not json',
            content_type='application/json',
        )
        self.assertEqual(response.status_code, 400)

        response = self.post('suggestions', {'sourceTitle': 'Returns', 'sourceType': 'question'})
        self.assertEqual(response.status_code, 400)
        self.assertIn('content', response.json()['errors'])

        response = self.post('suggestions', ['not', 'an', 'object'])
        self.assertEqual(response.status_code, 400)
        self.backend.generate.assert_not_awaited()

    def test_only_post_is_allowed(self) -> None:
        response = self.client.get(reverse('crosslinker:suggestions'))
        self.assertEqual(response.status_code, 405)

    def test_backend_failure_answers_with_empty_list(self) -> None:
        self.backend.generate.side_effect = RuntimeError('backend down')

        response = self.post('suggestions', {
            'sourceContent': SOURCE,
            'sourceTitle': 'Returns',
            'sourceType': 'question',
            'targetContents': TARGETS,
        })

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {'suggestions': []})

    def test_legacy_request_uses_question_format(self) -> None:
        self.backend.generate.return_value = json.dumps([
            {'questionId': 3, 'title': 'Refunds?', 'anchorText': 'Shipping times', 'relevanceScore': 60},
        ])

        response = self.post('suggestions', {
            'content': SOURCE,
            'existingQuestions': [{'id': 3, 'title': 'Refunds?', 'content': 'How do refunds work?'}],
        })

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['suggestions'], [
            {'questionId': 3, 'title': 'Refunds?', 'relevanceScore': 60.0, 'anchorText': 'Shipping times'},
        ])

    def test_omitted_limit_uses_configured_default(self) -> None:
        config = load_config(None)
        config.raw['default_limit'] = 1
        self.backend.generate.return_value = json.dumps({
            'suggestions': [
                {'contentId': 7, 'contentType': 'main_page', 'anchorText': 'refund policy', 'relevanceScore': 90},
                {'contentId': 8, 'contentType': 'main_page', 'anchorText': 'Shipping times', 'relevanceScore': 85},
            ]
        })
        services.set_engine(InterlinkingEngine(self.backend, cache=InMemoryCacheService(), config=config))

        response = self.post('suggestions', {
            'sourceContent': SOURCE,
            'sourceTitle': 'Returns',
            'sourceType': 'question',
            'targetContents': TARGETS,
        })

        self.assertEqual([item['contentId'] for item in response.json()['suggestions']], [7])

    def test_legacy_request_honours_limit(self) -> None:
        self.backend.generate.return_value = json.dumps([
            {'questionId': 3, 'anchorText': 'Shipping times', 'relevanceScore': 60},
            {'questionId': 4, 'anchorText': 'refund policy', 'relevanceScore': 70},
        ])
        questions = [
            {'id': 3, 'title': 'Shipping?', 'content': 'How long does shipping take?'},
            {'id': 4, 'title': 'Refunds?', 'content': 'How do refunds work?'},
        ]

        limited = self.post('suggestions', {'content': SOURCE, 'existingQuestions': questions, 'limit': 1})
        default = self.post('suggestions', {'content': SOURCE, 'existingQuestions': questions})

        self.assertEqual([item['questionId'] for item in limited.json()['suggestions']], [4])
        self.assertEqual([item['questionId'] for item in default.json()['suggestions']], [4, 3])

    def test_bidirectional_endpoint(self) -> None:
        self.backend.generate.return_value = json.dumps({
            'suggestions': [
                {
                    'sourceId': 4,
                    'sourceType': 'question',
                    'targetId': 7,
                    'targetType': 'main_page',
                    'anchorText': 'refund policy',
                    'relevanceScore': 92,
                },
            ]
        })

        response = self.post('bidirectional', {
            'forumContent': [{'id': 4, 'title': 'How do refunds work?', 'content': 'Where is the refund policy?'}],
            'mainSiteContent': [{'id': 7, 'title': 'Refund Policy', 'content': 'Refunds take 14 days.'}],
            'maxSuggestionsPerItem': 2,
        })

        self.assertEqual(response.status_code, 200)
        (item,) = response.json()['suggestions']
        self.assertEqual((item['sourceId'], item['targetId']), (4, 7))
        self.assertEqual(item['sourceTitle'], 'How do refunds work?')
        self.assertEqual(item['targetTitle'], 'Refund Policy')
        self.assertFalse(item['bidirectional'])

    def test_bidirectional_with_empty_pool_returns_no_suggestions(self) -> None:
        response = self.post('bidirectional', {
            'forumContent': [],
            'mainSiteContent': [{'id': 7, 'title': 'Refund Policy', 'content': 'Refunds take 14 days.'}],
        })

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {'suggestions': []})
        self.backend.generate.assert_not_awaited()


class OpenAIBackendViewTests(SimpleTestCase):
    def test_consecutive_requests_all_reach_the_backend(self) -> None:
        answer = json.dumps({
            'suggestions': [
                {'contentId': 7, 'contentType': 'main_page', 'anchorText': 'refund policy', 'relevanceScore': 90},
            ]
        })
        with serve_chat_completions(answer) as (base_url, server):
            backend = OpenAIGenerationBackend(api_key='test-key', base_url=base_url, timeout=5.0)
            services.set_engine(InterlinkingEngine(backend, cache=InMemoryCacheService()))
            self.addCleanup(services.set_engine, None)

            results = []
            for limit in (1, 2, 3):
                response = self.client.post(
                    reverse('crosslinker:suggestions'),
                    data=json.dumps({
                        'sourceContent': SOURCE,
                        'sourceTitle': 'Returns',
                        'sourceType': 'question',
                        'targetContents': TARGETS,
                        'limit': limit,
                    }),
                    content_type='application/json',
                )
                results.append([item['contentId'] for item in response.json()['suggestions']])

        self.assertEqual(results, [[7], [7], [7]])
        self.assertEqual(len(server.requests), 3)


class ServiceTests(SimpleTestCase):
    def setUp(self) -> None:
        caches['default'].clear()

    def test_django_cache_service_round_trip(self) -> None:
        cache = DjangoCacheService()
        params = {'source_content': SOURCE, 'limit': 3}
        value = [InterlinkingSuggestion(7, 'main_page', 'Refund Policy', 90, 'refund policy')]

        self.assertIsNone(cache.get('interlinks', params))
        cache.set('interlinks', params, value, 60)
        self.assertEqual(cache.get('interlinks', params), value)
        self.assertIsNone(cache.get('interlinks', {'source_content': SOURCE, 'limit': 2}))

        cache.delete('interlinks', params)
        self.assertIsNone(cache.get('interlinks', params))

    def test_django_cache_failures_degrade_to_miss(self) -> None:
        cache = DjangoCacheService()
        with patch.object(cache.cache, 'get', side_effect=ConnectionError('cache down')):
            self.assertIsNone(cache.get('interlinks', {'limit': 3}))
        with patch.object(cache.cache, 'set', side_effect=ConnectionError('cache down')):
            cache.set('interlinks', {'limit': 3}, ['value'], 60)

    @override_settings(CROSSLINKER_CACHE_BACKEND='django')
    def test_build_cache_follows_settings(self) -> None:
        self.assertIsInstance(build_cache(), DjangoCacheService)
        with self.settings(CROSSLINKER_CACHE_BACKEND='memory', CROSSLINKER_CACHE_MAX_ENTRIES=10):
            cache = build_cache()
            self.assertIsInstance(cache, InMemoryCacheService)
            self.assertEqual(cache.stats()['max_entries'], 10)

    def test_to_interlinkable_skips_unknown_types(self) -> None:
        records = [
            {'id': 1, 'type': 'question', 'title': 'Refunds?', 'content': 'Body'},
            {'id': 2, 'type': 'blog', 'title': 'Unknown', 'content': 'Body'},
            {'id': 3, 'type': 'answer', 'questionId': 1, 'content': 'Use the form.'},
        ]

        items = to_interlinkable(records)

        self.assertEqual([(item.type, item.id) for item in items], [('question', 1), ('answer', 3)])
        self.assertEqual(items[1].title, 'Answer to question 1')
        self.assertEqual(len(to_interlinkable(records, default_type='main_page')), 3)
