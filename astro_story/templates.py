"""Handlebars templates for every generation prompt.

Free text is inserted with triple-stash ({{{ }}}) so quotes and angle brackets
reach the model unescaped. All templates end with strict single-line JSON
output instructions; parsing.py copes with replies that ignore them.
"""

STORY_SYSTEM_PROMPT = (
    "Ты {{{author.name}}}, русскоязычная писательница, создающая атмосферный "
    "интерактивный рассказ во втором лице. Соблюдай формат JSON без Markdown "
    "и не добавляй вступлений."
)

CONTRACT_SYSTEM_PROMPT = (
    "Ты психолог-астролог. Ты формулируешь один психологический контракт для "
    "интерактивной истории и отвечаешь строго валидным JSON без Markdown."
)

CUSTOM_OPTION_SYSTEM_PROMPT = (
    "Ты редактор интерактивной истории. Ты превращаешь свободный ответ "
    "читательницы в вариант выбора и отвечаешь строго валидным JSON без Markdown."
)

_STORY_SO_FAR = """\
{{#if summary}}
Краткое содержание ранних событий: {{{summary}}}

{{/if}}
{{#if segments}}
Вот что уже рассказано:
{{#each segments}}

Шаг {{step}}. {{#if option_title}}Выбранное направление: «{{{option_title}}}»{{#if option_description}} ({{{option_description}}}){{/if}}.{{else}}Начальный фрагмент.{{/if}}
Текст:
{{{text}}}
{{/each}}
{{else}}
Это начало истории. Начни сразу с действия или ощущения, без пояснений предыстории и без имени героини.
{{/if}}
"""

ARC_PROMPT = """\
ВХОДНЫЕ ДАННЫЕ
Автор: {{{author.name}}}. {{{author.style_prompt}}}
Жанр: {{{author.genre}}}.
Всего дуг: {{arc_limit}}. Текущая дуга: {{current_arc}}.

{{#if contract}}
ПСИХОЛОГИЧЕСКИЙ КОНТРАКТ
Центральный вопрос: {{{contract}}}
{{#if theme}}
Тема: {{{theme}}}.
{{/if}}
{{#if traps}}
Ловушки:
{{#each traps}}
- {{{name}}}: {{{description}}}
{{/each}}
{{/if}}
{{#if choice_points}}
Точки выбора: {{#each choice_points}}{{{this}}} {{/each}}
{{/if}}
{{#if scenario}}
Сцена для первой дуги: {{{scenario.setting}}}. {{{scenario.situation}}} Символизм: {{{scenario.symbolism}}}.
{{/if}}

{{/if}}
{{#if chart}}
КАРТА
{{{chart}}}

{{/if}}
ЭТАП: {{{stage.label}}}
{{{stage.directive}}}

""" + _STORY_SO_FAR + """
{{#if choice}}
Следующий фрагмент должен соответствовать выбору пользователя: «{{{choice.title}}}»{{#if choice.description}} ({{{choice.description}}}){{/if}}.

{{/if}}
ПРАВИЛА
Повествование ведётся от второго лица («ты»), героиня не называется по имени.
Сцена — один абзац из 3–5 предложений, 55–85 слов, короткие конкретные фразы.
Сцена подводит к развилке и оставляет тайну.
Сформируй ровно два контрастных варианта выбора, без клише «продолжить» или «вариант 1».
{{#if first_arc}}
Заполни moon_summary: одна строка до 300 символов, в которой Луна представляет историю.
{{/if}}

ФОРМАТ ОТВЕТА
Ответь строго одной строкой JSON, без Markdown и переносов строк внутри значений:
{"meta": {"author": "...", "title": "...", "genre": "...", "contract": "...", "arc_limit": {{arc_limit}}, "moon_summary": "..."}, "node": {"arc": {{current_arc}}, "stage": "{{{stage.label}}}", "scene": "..."}, "options": [{"id": "kebab-case", "title": "до 48 символов", "description": "до 140 символов"}, {"id": "...", "title": "...", "description": "..."}]}
"""

FINALE_PROMPT = """\
ВХОДНЫЕ ДАННЫЕ
Автор: {{{author.name}}}. {{{author.style_prompt}}}
Жанр: {{{author.genre}}}.
История завершается: это финал после {{arc_limit}} дуг.
{{#if contract}}
Центральный вопрос: {{{contract}}}
{{/if}}

КАРТА
{{#if birth_data}}
Данные рождения: {{{birth_data}}}
{{/if}}
{{#if placements}}
Ключевые положения:
{{#take placements 5}}
- {{{this}}}
{{/take}}
{{/if}}
{{#if hard_aspects}}
Напряжённые аспекты:
{{#take hard_aspects 3}}
- {{{this}}}
{{/take}}
{{/if}}
{{#if soft_aspects}}
Гармоничные аспекты:
{{#take soft_aspects 3}}
- {{{this}}}
{{/take}}
{{/if}}

""" + _STORY_SO_FAR + """
{{#if choice}}
Последний выбор: «{{{choice.title}}}»{{#if choice.description}} ({{{choice.description}}}){{/if}}.

{{/if}}
ЗАДАЧА
Заверши историю: resolution — развязка последней сцены во втором лице (4–6 предложений).
human_interpretation — что выборы говорят о героине, простым человеческим языком.
astrological_interpretation — как эти выборы отражают карту, со ссылками на положения и аспекты.

ФОРМАТ ОТВЕТА
Ответь строго одной строкой JSON, без Markdown и переносов строк внутри значений:
{"meta": {"author": "...", "title": "...", "genre": "...", "contract": "...", "arc_limit": {{arc_limit}} }, "finale": {"resolution": "...", "human_interpretation": "...", "astrological_interpretation": "..."}}
"""

CONTRACT_PROMPT = """\
Сформулируй один психологический контракт — центральный вопрос, который героиня будет проживать в интерактивной истории.

{{#if chart}}
КАРТА
{{{chart}}}
{{/if}}
{{#if birth_data}}
Данные рождения: {{{birth_data}}}
{{/if}}

{{#if recent_contracts}}
Недавно использованные контракты (не повторяй): {{#each recent_contracts}}{{{this}}} {{/each}}
{{/if}}
{{#if recent_scenarios}}
Недавно использованные сцены (не повторяй): {{#each recent_scenarios}}{{{this}}} {{/each}}
{{/if}}

ТРЕБОВАНИЯ
question и theme — непустые строки.
astro_indicators — хотя бы один астрологический признак.
common_traps — хотя бы одна ловушка с name и description.
scenarios — хотя бы одна сцена с id (kebab-case), setting, situation, symbolism.
choice_points — хотя бы одна точка выбора.

ФОРМАТ ОТВЕТА
Ответь строго одной строкой JSON без Markdown:
{"contract": {"id": "kebab-case", "question": "...", "theme": "...", "astro_indicators": ["..."], "common_traps": [{"name": "...", "description": "..."}], "scenarios": [{"id": "...", "setting": "...", "situation": "...", "symbolism": "..."}], "choice_points": ["..."]}, "recommended_scenario_id": "..."}
"""

CUSTOM_OPTION_PROMPT = """\
Жанр истории: {{{author.genre}}}.
""" + _STORY_SO_FAR + """
Читательница ответила своими словами: «{{{transcript}}}»

Преврати этот ответ в вариант выбора, который продолжает историю и сохраняет смысл её слов.
title — до 48 символов, description — одно предложение до 140 символов.

ФОРМАТ ОТВЕТА
Ответь строго одной строкой JSON без Markdown:
{"id": "kebab-case", "title": "...", "description": "..."}
"""

PLANET_DIALOGUE_SYSTEM_PROMPT = (
    "Ты создаёшь живые диалоги планет с разными характерами и отвечаешь "
    "строго валидным JSON без Markdown."
)

PLANET_DIALOGUE_PROMPT = """\
Создай {{min_lines}}–{{max_lines}} реплик рабочего совещания планет ({{{speakers}}}). Они собрались обсудить, какую интерактивную историю придумать для героини.

{{#if birth_data}}
Данные рождения: {{{birth_data}}}
{{/if}}
{{#if placements}}
Планеты: {{#take placements 5}}{{{this}}}; {{/take}}
{{/if}}
{{#if hard_aspects}}
Напряжения: {{#take hard_aspects 3}}{{{this}}}; {{/take}}
{{/if}}

ВАЖНО
- Начни с приветствия Луны вроде «Так, коллеги, собрались? Что сегодня придумаем?»
- Планеты отвечают друг другу, спорят, подшучивают и перебивают.
- Обсуждают, какую ситуацию предложить, какой конфликт показать, какой паттерн карты проработать.
- С юмором, но по делу: это рабочая встреча.
- Каждая реплика короче {{line_limit}} символов.

ХАРАКТЕРЫ
{{#each characters}}
- {{{name}}}: {{{traits}}}
{{/each}}

ФОРМАТ ОТВЕТА
Ответь строго одной строкой JSON без Markdown:
{"dialogue": [{"planet": "Луна", "message": "..."}, {"planet": "Плутон", "message": "..."}]}
"""
