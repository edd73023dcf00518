"""
AI gateway client (OpenAI-compatible chat completions).

Three uses: extracting product rows from a photo of an invoice,
virtual try-on of a product on a customer photo, and dashboard insights.
Network calls go through `requests` with an explicit timeout.
"""
import base64
import binascii
import io
import json
import logging
import re
from typing import Optional

import requests
from flask import current_app
from PIL import Image, UnidentifiedImageError

from vitrine.exceptions import AIServiceError, BusinessLogicError

logger = logging.getLogger(__name__)

JSON_OBJECT_RE = re.compile(r'\{[\s\S]*\}')
JSON_ARRAY_RE = re.compile(r'\[[\s\S]*\]')
DATA_URL_RE = re.compile(r'^data:(?P<mime>[\w/+.-]+);base64,(?P<data>.+)$', re.DOTALL)

EXTRACTION_SYSTEM_PROMPT = """Você é um assistente especializado em extrair informações de notas fiscais e pedidos de compra de joias e acessórios.
Analise a imagem fornecida e extraia a lista de produtos com suas quantidades, valores unitários e descrições resumidas.

IMPORTANTE:
- Extraia APENAS produtos válidos da nota/pedido
- O valor deve ser o preço UNITÁRIO, não o total
- Se houver quantidade, extraia corretamente
- Ignore cabeçalhos, totais, impostos, etc
- Para a DESCRIÇÃO, extraia detalhes como tamanho, se é regulável, conjunto, par ou unissex e o material, no máximo 30 caracteres
- Retorne SOMENTE o JSON, sem texto adicional

Retorne no formato JSON:
{
  "products": [
    { "name": "Anel Prata 925", "quantity": 10, "unitPrice": 25.50, "description": "TAM 18, Regulável" }
  ]
}"""

TRY_ON_BASE_PROMPT = """Você é um especialista em edição de imagens de moda. Sua tarefa é adicionar o acessório/produto da SEGUNDA imagem na pessoa da PRIMEIRA imagem.

REGRAS CRÍTICAS:
1. MANTENHA a pessoa da primeira imagem EXATAMENTE como está: rosto, corpo, pose, roupas, cabelo, maquiagem e fundo
2. APENAS ADICIONE o produto/acessório de forma natural e realista
3. A iluminação e proporção do produto devem combinar com a foto da pessoa
4. O resultado deve parecer uma foto real, não uma montagem

PRODUTO: {product_name}
"""

# (category keywords, placement instruction); first match wins
TRY_ON_PLACEMENTS = (
    (('colar', 'gargantilha', 'corrente'),
     'Coloque o colar/corrente no pescoço da pessoa de forma natural, respeitando o decote da roupa.'),
    (('anel', 'anéis'),
     'Coloque o anel no dedo da pessoa. Se a mão não estiver visível, posicione de forma criativa mas realista.'),
    (('brinco',),
     'Coloque o brinco na orelha da pessoa de forma natural.'),
    (('pulseira', 'bracelete'),
     'Coloque a pulseira/bracelete no pulso da pessoa.'),
    (('roupa', 'blusa', 'camisa', 'vestido'),
     'Substitua a roupa atual da pessoa pela roupa do produto, mantendo a pose e proporções.'),
    (('sapato', 'tênis', 'sandália'),
     'Coloque o calçado nos pés da pessoa de forma natural.'),
)
TRY_ON_GENERIC_PLACEMENT = 'Adicione o produto na pessoa de forma natural e apropriada ao tipo de produto.'

INSIGHTS_FALLBACK_PARSE = [
    {'title': 'Análise concluída', 'description': 'Registre mais vendas para receber insights detalhados.', 'type': 'info'}
]
INSIGHTS_RATE_LIMITED = [
    {'title': 'Limite atingido', 'description': 'Tente novamente em alguns instantes.', 'type': 'warning'}
]
INSIGHTS_WELCOME = [
    {'title': 'Bem-vindo!', 'description': 'Cadastre produtos e registre vendas para receber insights.', 'type': 'info'}
]


def build_try_on_prompt(product_name: str, category_name: Optional[str] = None) -> str:
    """Base instructions plus a placement hint chosen by category name."""
    prompt = TRY_ON_BASE_PROMPT.format(product_name=product_name)
    category = (category_name or '').lower()
    for keywords, placement in TRY_ON_PLACEMENTS:
        if any(keyword in category for keyword in keywords):
            return prompt + f'\nPOSICIONAMENTO: {placement}'
    return prompt + f'\nPOSICIONAMENTO: {TRY_ON_GENERIC_PLACEMENT}'


def extract_json(content: str, pattern=JSON_OBJECT_RE):
    """Pull the first JSON object (or array) out of free model text."""
    match = pattern.search(content or '')
    if not match:
        return None
    return json.loads(match.group(0))


def image_to_data_url(raw: bytes, max_edge: int = 1024) -> str:
    """
    Re-encode an uploaded photo as a JPEG data URL no larger than max_edge.

    Raises:
        BusinessLogicError: the bytes are not a readable image
    """
    try:
        with Image.open(io.BytesIO(raw)) as image:
            image = image.convert('RGB')
            image.thumbnail((max_edge, max_edge))
            buffer = io.BytesIO()
            image.save(buffer, format='JPEG', quality=85)
    except (UnidentifiedImageError, OSError) as e:
        raise BusinessLogicError(f'Imagem inválida: {e}')
    encoded = base64.b64encode(buffer.getvalue()).decode('ascii')
    return f'data:image/jpeg;base64,{encoded}'


def normalize_image_input(value, max_edge: int = 1024) -> str:
    """
    Accept an upload, raw bytes, a data URL or bare base64 and return a
    downscaled JPEG data URL. http(s) URLs are passed through.
    """
    if value is None or value == '':
        raise BusinessLogicError('Imagem não fornecida')
    if hasattr(value, 'read'):
        return image_to_data_url(value.read(), max_edge)
    if isinstance(value, bytes):
        return image_to_data_url(value, max_edge)

    value = str(value).strip()
    if value.startswith(('http://', 'https://')):
        return value

    match = DATA_URL_RE.match(value)
    payload = match.group('data') if match else value
    try:
        raw = base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError):
        raise BusinessLogicError('Imagem inválida')
    return image_to_data_url(raw, max_edge)


class AIGatewayClient:
    """Thin client over the chat-completions endpoint."""

    def __init__(self, api_key: Optional[str] = None, url: Optional[str] = None, timeout: Optional[int] = None):
        self.api_key = api_key or current_app.config.get('AI_API_KEY')
        self.url = url or current_app.config.get('AI_GATEWAY_URL')
        self.timeout = timeout or current_app.config.get('AI_REQUEST_TIMEOUT', 60)

    def _headers(self) -> dict:
        return {
            'Authorization': f'Bearer {self.api_key}',
            'Content-Type': 'application/json',
        }

    def chat(self, model: str, messages: list, **extra) -> dict:
        """
        POST a chat completion and return the decoded body.

        Raises:
            AIServiceError: rate limit (429), exhausted credits (402),
                any other non-2xx answer or a network failure
        """
        if not self.api_key:
            raise AIServiceError('Serviço de IA não configurado', status_code=503)

        payload = {'model': model, 'messages': messages}
        payload.update(extra)

        try:
            response = requests.post(self.url, headers=self._headers(), json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"[AI] Request to gateway failed: {e}")
            raise AIServiceError('Erro ao conectar com o serviço de IA. Tente novamente.')

        if response.status_code == 429:
            logger.warning("[AI] Rate limited by gateway")
            raise AIServiceError(
                'Muitas requisições. Tente novamente em alguns segundos.',
                status_code=429, upstream_status=429
            )
        if response.status_code == 402:
            logger.warning("[AI] Gateway credits exhausted")
            raise AIServiceError(
                'Créditos insuficientes. Adicione créditos à sua conta.',
                status_code=402, upstream_status=402
            )
        if not response.ok:
            logger.error(f"[AI] Gateway error {response.status_code}: {response.text[:500]}")
            raise AIServiceError(
                'Erro ao processar a solicitação com IA. Tente novamente.',
                upstream_status=response.status_code
            )

        try:
            return response.json()
        except ValueError:
            raise AIServiceError('Resposta inválida do serviço de IA')

    @staticmethod
    def _message(data: dict) -> dict:
        choices = data.get('choices') or [{}]
        return choices[0].get('message') or {}

    def extract_products(self, image_data_url: str) -> list:
        """
        Product rows read from an invoice/order photo.

        Returns:
            list of {'name', 'quantity', 'unitPrice', 'description'}

        Raises:
            AIServiceError: gateway failure or unreadable answer
            BusinessLogicError: no product found in the image
        """
        data = self.chat(
            current_app.config['AI_TEXT_MODEL'],
            [
                {'role': 'system', 'content': EXTRACTION_SYSTEM_PROMPT},
                {'role': 'user', 'content': [
                    {'type': 'text', 'text': 'Extraia todos os produtos desta nota/pedido com nome, quantidade e valor unitário.'},
                    {'type': 'image_url', 'image_url': {'url': image_data_url}},
                ]},
            ]
        )
        content = self._message(data).get('content') or ''
        try:
            parsed = extract_json(content)
        except json.JSONDecodeError as e:
            logger.error(f"[AI] Could not parse extraction answer: {e}")
            raise AIServiceError('Não foi possível interpretar os produtos da imagem')

        products = (parsed or {}).get('products') or []
        if not products:
            raise BusinessLogicError(
                'Nenhum produto encontrado na imagem. Certifique-se de que a imagem contém uma nota ou lista de produtos legível.'
            )
        return products

    def virtual_try_on(self, user_photo: str, product_image: str, product_name: str,
                       category_name: Optional[str] = None) -> str:
        """
        Generated image (data URL) of the product worn by the person.

        Raises:
            AIServiceError: gateway failure, or no image came back
        """
        prompt = build_try_on_prompt(product_name, category_name)
        data = self.chat(
            current_app.config['AI_IMAGE_MODEL'],
            [{'role': 'user', 'content': [
                {'type': 'text', 'text': prompt},
                {'type': 'image_url', 'image_url': {'url': user_photo}},
                {'type': 'image_url', 'image_url': {'url': product_image}},
            ]}],
            modalities=['image', 'text']
        )
        images = self._message(data).get('images') or []
        generated = images[0].get('image_url', {}).get('url') if images else None
        if not generated:
            logger.error(f"[AI] Try-on answer carried no image: {json.dumps(data)[:500]}")
            raise AIServiceError('Não foi possível gerar a visualização. Tente outra foto.')
        return generated

    def generate_insights(self, stats: dict, products: list) -> list:
        """
        3-5 short insights about the store.

        Never raises: rate limits and failures map to fixed insights.
        """
        prompt = f"""Você é um analista de negócios. Com base nos dados da loja abaixo, forneça de 3 a 5 insights breves e acionáveis. Cada insight deve ter um título (máx. 5 palavras), uma descrição (máx. 30 palavras) e um tipo (success, warning ou info).

Estatísticas da loja:
- Faturamento total: {stats.get('total_revenue', 0)}
- Total de vendas: {stats.get('total_sales', 0)}
- Produtos mais vendidos: {json.dumps(stats.get('best_selling_products', []), ensure_ascii=False, default=str)}
- Melhores clientes: {json.dumps(stats.get('top_customers', []), ensure_ascii=False, default=str)}

Estoque de produtos:
{json.dumps(products or [], ensure_ascii=False, indent=2, default=str)}

Responda SOMENTE com um array JSON válido neste formato:
[{{"title": "...", "description": "...", "type": "success|warning|info"}}]

Foque em produtos com alto giro (success), itens com estoque baixo (warning), recomendações (info) e padrões de faturamento (success/info)."""

        try:
            data = self.chat(
                current_app.config['AI_TEXT_MODEL'],
                [
                    {'role': 'system', 'content': 'Você é um analista de negócios prestativo. Responda sempre apenas com JSON válido.'},
                    {'role': 'user', 'content': prompt},
                ]
            )
        except AIServiceError as e:
            if e.upstream_status == 429:
                return list(INSIGHTS_RATE_LIMITED)
            logger.warning(f"[AI] Insights unavailable: {e.message}")
            return list(INSIGHTS_WELCOME)

        content = self._message(data).get('content') or ''
        try:
            insights = extract_json(content, JSON_ARRAY_RE)
        except json.JSONDecodeError as e:
            logger.warning(f"[AI] Could not parse insights: {e}")
            return list(INSIGHTS_FALLBACK_PARSE)
        if not isinstance(insights, list):
            return []
        return [
            {
                'title': str(item.get('title', '')),
                'description': str(item.get('description', '')),
                'type': item.get('type') if item.get('type') in ('success', 'warning', 'info') else 'info',
            }
            for item in insights if isinstance(item, dict)
        ]


def get_ai_client() -> AIGatewayClient:
    return AIGatewayClient()
