"""
Integration tests for the AI gateway client (HTTP stubbed).
"""

import pytest

from vitrine.exceptions import AIServiceError, BusinessLogicError
from vitrine.services import ai_service


class FakeResponse:
    def __init__(self, status_code, body=None, text=''):
        self.status_code = status_code
        self._body = body
        self.text = text

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    def json(self):
        if self._body is None:
            raise ValueError('no json')
        return self._body


def _answer(content=None, images=None):
    message = {'content': content}
    if images is not None:
        message['images'] = images
    return {'choices': [{'message': message}]}


@pytest.fixture
def gateway(app, monkeypatch):
    """AIGatewayClient whose HTTP answers are queued by the test."""
    calls = []
    answers = []

    def fake_post(url, headers=None, json=None, timeout=None):
        calls.append({'url': url, 'headers': headers, 'json': json})
        return answers.pop(0)

    monkeypatch.setattr(ai_service.requests, 'post', fake_post)
    with app.app_context():
        client = ai_service.AIGatewayClient()
        client.calls = calls
        client.answers = answers
        yield client


class TestGatewayErrors:
    """Upstream status codes map to user-facing errors."""

    def test_rate_limited(self, gateway):
        gateway.answers.append(FakeResponse(429))
        with pytest.raises(AIServiceError) as exc:
            gateway.chat('m', [])
        assert exc.value.status_code == 429
        assert 'Muitas requisições' in exc.value.message

    def test_credits_exhausted(self, gateway):
        gateway.answers.append(FakeResponse(402))
        with pytest.raises(AIServiceError) as exc:
            gateway.chat('m', [])
        assert exc.value.status_code == 402
        assert 'Créditos insuficientes' in exc.value.message

    def test_other_failure(self, gateway):
        gateway.answers.append(FakeResponse(500, text='boom'))
        with pytest.raises(AIServiceError) as exc:
            gateway.chat('m', [])
        assert exc.value.status_code == 502
        assert exc.value.upstream_status == 500

    def test_missing_api_key(self, app):
        with app.app_context():
            client = ai_service.AIGatewayClient()
            client.api_key = None
            with pytest.raises(AIServiceError) as exc:
                client.chat('m', [])
        assert exc.value.status_code == 503

    def test_bearer_header_and_extra_fields(self, gateway):
        gateway.answers.append(FakeResponse(200, _answer('ok')))
        gateway.chat('model-x', [{'role': 'user', 'content': 'hi'}], modalities=['image', 'text'])

        call = gateway.calls[0]
        assert call['headers']['Authorization'] == 'Bearer test-key'
        assert call['json']['model'] == 'model-x'
        assert call['json']['modalities'] == ['image', 'text']


class TestExtractProducts:
    """Invoice extraction."""

    def test_json_is_pulled_out_of_free_text(self, gateway):
        content = 'Aqui está: {"products": [{"name": "Anel", "quantity": 2, "unitPrice": 10.5}]} fim'
        gateway.answers.append(FakeResponse(200, _answer(content)))

        rows = gateway.extract_products('data:image/jpeg;base64,AAAA')

        assert rows == [{'name': 'Anel', 'quantity': 2, 'unitPrice': 10.5}]

    def test_no_products_found(self, gateway):
        gateway.answers.append(FakeResponse(200, _answer('{"products": []}')))
        with pytest.raises(BusinessLogicError):
            gateway.extract_products('data:image/jpeg;base64,AAAA')

    def test_unparseable_answer(self, gateway):
        gateway.answers.append(FakeResponse(200, _answer('{"products": [oops}')))
        with pytest.raises(AIServiceError):
            gateway.extract_products('data:image/jpeg;base64,AAAA')


class TestVirtualTryOn:
    """Try-on image generation."""

    def test_generated_image_url(self, gateway):
        images = [{'type': 'image_url', 'image_url': {'url': 'data:image/png;base64,XYZ'}}]
        gateway.answers.append(FakeResponse(200, _answer('', images)))

        result = gateway.virtual_try_on('data:u', 'http://img/p.jpg', 'Colar', 'Colares')

        assert result == 'data:image/png;base64,XYZ'
        prompt = gateway.calls[0]['json']['messages'][0]['content'][0]['text']
        assert 'Colar' in prompt
        assert 'pescoço' in prompt

    def test_no_image_returned(self, gateway):
        gateway.answers.append(FakeResponse(200, _answer('sem imagem', [])))
        with pytest.raises(AIServiceError):
            gateway.virtual_try_on('data:u', 'http://img/p.jpg', 'Colar')


class TestInsights:
    """Insights never raise."""

    def test_insights_are_parsed(self, gateway):
        content = '[{"title": "Alta", "description": "Vendas subindo", "type": "success"},' \
                  ' {"title": "X", "description": "Y", "type": "weird"}]'
        gateway.answers.append(FakeResponse(200, _answer(content)))

        insights = gateway.generate_insights({'total_revenue': '10.00'}, [])

        assert insights[0] == {'title': 'Alta', 'description': 'Vendas subindo', 'type': 'success'}
        assert insights[1]['type'] == 'info'

    def test_rate_limit_becomes_warning(self, gateway):
        gateway.answers.append(FakeResponse(429))
        insights = gateway.generate_insights({}, [])
        assert insights == ai_service.INSIGHTS_RATE_LIMITED
        assert insights[0]['type'] == 'warning'

    def test_gateway_failure_becomes_welcome(self, gateway):
        gateway.answers.append(FakeResponse(500))
        assert gateway.generate_insights({}, []) == ai_service.INSIGHTS_WELCOME

    def test_unparseable_becomes_fallback(self, gateway):
        gateway.answers.append(FakeResponse(200, _answer('[{broken]')))
        assert gateway.generate_insights({}, []) == ai_service.INSIGHTS_FALLBACK_PARSE
