"""Prompt templates for extraction and appeal generation.

Keeping prompts in a central location makes it easier to iterate on
their content and keep the extraction schema in step with
``dirigia.models.schemas.FineExtraction``.  Prompts are Portuguese:
the notices, the users and the appeals all are.
"""

from __future__ import annotations

from textwrap import dedent
from typing import Iterable, Optional

from dirigia.models.schemas import FineData

NOT_INFORMED = "NÃO INFORMADO"

# Canned argument tags offered by the client next to the free-text narrative
DEFAULT_ARGUMENTS: tuple[str, ...] = (
    "Erro de enquadramento",
    "Ausência de sinalização",
    "Equipamento irregular",
    "Veículo não estava no local",
    "Notificação recebida fora do prazo",
)


def get_extraction_prompt() -> str:
    """Return the system prompt for reading a traffic-fine notice.

    The model must answer a single JSON object with ``isTrafficFine``
    plus the ten notice fields, using null for anything it cannot read.
    """
    return dedent(
        """
        Você é um especialista em multas de trânsito brasileiras.
        Analise a imagem e extraia os dados.
        Responda obrigatoriamente no formato JSON abaixo:
        {
          "isTrafficFine": boolean,
          "aitNumber": string,
          "dataInfracao": string,
          "local": string,
          "placa": string,
          "renavam": string,
          "artigo": string,
          "orgaoAutuador": string,
          "nomeCondutor": string,
          "cpfCondutor": string,
          "enderecoCondutor": string
        }
        "isTrafficFine" deve ser true somente se o documento for uma
        notificação de autuação ou de penalidade de trânsito.
        Use a data no formato DD/MM/AAAA quando possível.
        Se um campo não for encontrado, use null.
        """
    ).strip()


EXTRACTION_USER_TEXT = "Extraia os dados desta notificação de multa."


def get_generation_system_prompt() -> str:
    """Return the system prompt for writing the appeal."""
    return dedent(
        """
        Você é um especialista em legislação de trânsito brasileira com experiência em recursos administrativos.
        Gere um recurso de multa formal e sucinto, com linguagem jurídica precisa conforme o CTB.

        REGRAS DE FORMATAÇÃO:
        - NÃO use caracteres markdown como "#", "**", "*" ou qualquer formatação especial
        - Escreva em texto corrido, natural e humanizado
        - Use apenas quebras de linha e espaçamento para organizar o documento
        - NÃO inclua lista de documentos anexos

        ESTRUTURA DO RECURSO:
        1. Cabeçalho com órgão destinatário
        2. Qualificação do requerente (nome, CPF, endereço)
        3. Dados do auto de infração (número, data, local, placa, artigo)
        4. Breve exposição dos fatos (máximo 2 parágrafos)
        5. Fundamentação legal concisa (citar artigos relevantes do CTB)
        6. Pedido direto de cancelamento ou arquivamento

        O texto deve ser:
        - Formal, respeitoso e direto ao ponto
        - Sucinto mas completo (sem repetições)
        - Pronto para impressão
        - Humanizado, como se escrito por uma pessoa real

        IMPORTANTE: Use apenas as informações fornecidas. Se faltar dado essencial, indique "[PREENCHER]".
        """
    ).strip()


def _value(v: Optional[str]) -> str:
    return v if v else NOT_INFORMED


def build_generation_user_prompt(data: FineData, explanation: str, arguments: Iterable[str]) -> str:
    """Compose the user prompt from reviewed fields, narrative and argument tags."""
    args = [a for a in arguments if a]
    arguments_text = f"Argumentos selecionados: {', '.join(args)}" if args else ""
    lines = [
        "Gere um recurso de multa de trânsito sucinto e direto com base nos dados:",
        "",
        "NOTIFICAÇÃO:",
        f"- Auto de Infração: {_value(data.ait_number)}",
        f"- Data: {_value(data.data_infracao)}",
        f"- Local: {_value(data.local)}",
        f"- Placa: {_value(data.placa)}",
        f"- RENAVAM: {_value(data.renavam)}",
        f"- Artigo: {_value(data.artigo)}",
        f"- Órgão: {_value(data.orgao_autuador)}",
        "",
        "CONDUTOR:",
        f"- Nome: {_value(data.nome_condutor)}",
        f"- CPF: {_value(data.cpf_condutor)}",
        f"- Endereço: {_value(data.endereco_condutor)}",
        "",
        "RELATO:",
        explanation or "Não fornecido",
        "",
        arguments_text,
        "",
        "Gere o recurso completo, sem markdown e sem lista de documentos anexos.",
    ]
    return "\n".join(lines)
