"""JSON endpoints for the crosslinker app.

The platform's page rendering and publishing services call these views to
obtain link suggestions. Payloads use the camelCase field names of the
public API; each view maps them onto a form, runs the engine and always
answers with a (possibly empty) ``suggestions`` list once the input is
valid.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Mapping

from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from . import services
from .forms import BidirectionalRequestForm, SuggestionRequestForm

SUGGESTION_FIELDS = {
    'content': ('sourceContent', 'content'),
    'source_title': ('sourceTitle',),
    'source_type': ('sourceType',),
    'source_id': ('sourceId',),
    'limit': ('limit',),
    'target_contents': ('targetContents',),
    'existing_questions': ('existingQuestions',),
}

BIDIRECTIONAL_FIELDS = {
    'forum_content': ('forumContent',),
    'main_site_content': ('mainSiteContent',),
    'max_suggestions_per_item': ('maxSuggestionsPerItem',),
}


def _load_payload(request: HttpRequest) -> Dict[str, Any] | None:
    try:
        payload = json.loads(request.body or b'{}')
    except (ValueError, UnicodeDecodeError):
        return None
    return payload if isinstance(payload, dict) else None


def _form_data(payload: Mapping[str, Any], fields: Mapping[str, tuple[str, ...]]) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    for field_name, keys in fields.items():
        for key in keys:
            if payload.get(key) is not None:
                data[field_name] = payload[key]
                break
    return data


def _invalid(errors: Any) -> JsonResponse:
    return JsonResponse({'detail': 'Invalid interlinking request.', 'errors': errors}, status=400)


@csrf_exempt
@require_POST
async def interlinking_suggestions(request: HttpRequest) -> JsonResponse:
    """Return ranked link suggestions for a piece of source content.

    Requests that omit ``sourceTitle`` or ``sourceType`` are served by the
    question-only path and answer in its older ``questionId`` format.
    """

    payload = _load_payload(request)
    if payload is None:
        return _invalid({'__all__': ['Request body must be a JSON object.']})

    form = SuggestionRequestForm(_form_data(payload, SUGGESTION_FIELDS))
    if not form.is_valid():
        return _invalid(form.errors.get_json_data())

    data = form.cleaned_data
    if form.is_legacy:
        legacy = await services.generate_question_interlinking_suggestions(
            data['content'],
            data['existing_questions'],
            data.get('limit'),
        )
        return JsonResponse({'suggestions': [item.to_dict() for item in legacy]})

    suggestions = await services.generate_interlinking_suggestions(
        data['content'],
        data['source_title'],
        data['source_type'],
        data['target_contents'],
        data.get('limit'),
        source_id=data.get('source_id'),
    )
    return JsonResponse({'suggestions': [item.to_dict() for item in suggestions]})


@csrf_exempt
@require_POST
async def bidirectional_suggestions(request: HttpRequest) -> JsonResponse:
    """Return cross-corpus link suggestions between forum and main site content."""

    payload = _load_payload(request)
    if payload is None:
        return _invalid({'__all__': ['Request body must be a JSON object.']})

    form = BidirectionalRequestForm(_form_data(payload, BIDIRECTIONAL_FIELDS))
    if not form.is_valid():
        return _invalid(form.errors.get_json_data())

    data = form.cleaned_data
    suggestions = await services.generate_bidirectional_interlinking_suggestions(
        data['forum_content'],
        data['main_site_content'],
        data.get('max_suggestions_per_item'),
    )
    return JsonResponse({'suggestions': [item.to_dict() for item in suggestions]})
