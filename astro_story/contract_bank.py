"""Hand-authored psychological contracts used when generation fails."""

from astro_story.models import PsychologicalContract

_RAW_CONTRACTS = [
    {
        "id": "trust-vs-reason",
        "question": "Могу ли я доверять своим чувствам, когда разум говорит иное?",
        "theme": "Эмоции и логика",
        "astro_indicators": [
            "Луна в конфликте с Меркурием",
            "Луна в квадрате/оппозиции с Сатурном",
            "Меркурий в водном знаке vs Луна в воздушном",
        ],
        "common_traps": [
            {"name": "Рационализация чувств",
             "description": "Попытка объяснить эмоции логикой, вместо того чтобы их прожить"},
            {"name": "Игнорирование интуиции",
             "description": "Отказ от внутреннего знания в пользу \"разумных\" аргументов"},
            {"name": "Эмоциональное онемение",
             "description": "Выбор не чувствовать, чтобы не ошибиться"},
        ],
        "scenarios": [
            {"id": "night-lab", "setting": "Лаборатория ночью",
             "situation": "Ты исследуешь важные данные, но цифры не совпадают с ощущением истины",
             "symbolism": "Ум против интуиции"},
            {"id": "twilight-hospital", "setting": "Больничный коридор в сумерках",
             "situation": "Врачи настаивают на решении, а твоя интуиция шепчет другое",
             "symbolism": "Доверие авторитету vs внутренний голос"},
            {"id": "afterhours-office", "setting": "Пустой офис вечером",
             "situation": "Документ выглядит безупречно, но внутри нарастает тревога",
             "symbolism": "Рациональная правда vs эмоциональная правда"},
        ],
        "choice_points": [
            "Поверить цифрам или телу?",
            "Следовать плану или импульсу?",
            "Объяснить чувство или позволить ему быть?",
        ],
    },
    {
        "id": "desire-vs-duty",
        "question": "Имею ли я право на свои желания, если они идут вразрез с обязанностями?",
        "theme": "Желания и долг",
        "astro_indicators": [
            "Венера в напряжении с Сатурном",
            "Луна-Сатурн",
            "Солнце в квадрате к Сатурну",
        ],
        "common_traps": [
            {"name": "Самопожертвование",
             "description": "Отказ от желаний ради роли ответственной дочери/подруги/сотрудницы"},
            {"name": "Откладывание жизни",
             "description": "Жить по принципу «потом, когда всё сделаю»"},
            {"name": "Вина за удовольствие",
             "description": "Наказывать себя за любые проявления лёгкости"},
        ],
        "scenarios": [
            {"id": "dawn-station", "setting": "Пустой вокзал на рассвете",
             "situation": "В руках билет в город мечты, но телефон взрывается сообщениями от близких",
             "symbolism": "Побег к себе vs удержание обязательствами"},
            {"id": "locked-toy-store", "setting": "Закрытый магазин игрушек ночью",
             "situation": "Ты видишь за стеклом вещь детской мечты и решаешь: взять или пройти мимо",
             "symbolism": "Разрешить себе радость"},
            {"id": "attic-dreams", "setting": "Чердак родительского дома",
             "situation": "В коробках — твои старые мечты, и нужно выбрать: выбросить или дать им шанс",
             "symbolism": "Возвращение к забытому желанию"},
        ],
        "choice_points": [
            "Остаться или уехать?",
            "Взять желаемое или отказаться?",
            "Вспомнить мечту или похоронить?",
        ],
    },
    {
        "id": "vulnerability-vs-control",
        "question": "Смогу ли я позволить себе быть уязвимой, не потеряв контроль?",
        "theme": "Уязвимость и контроль",
        "astro_indicators": [
            "Плутон-Луна",
            "Сатурн-Луна/Венера",
            "Скорпион или 8-й дом",
        ],
        "common_traps": [
            {"name": "Гиперконтроль",
             "description": "Пытаться держать всё под контролем, чтобы не столкнуться с хаосом"},
            {"name": "Эмоциональная броня",
             "description": "Скрывать чувства, чтобы никто не увидел слабости"},
            {"name": "Манипуляция силой",
             "description": "Использовать власть, чтобы управлять другими вместо честности"},
        ],
        "scenarios": [
            {"id": "rooftop-night", "setting": "Крыша небоскрёба в ветреную ночь",
             "situation": "Тебя просят отпустить перила и довериться",
             "symbolism": "Отпускание контроля как свободное падение"},
            {"id": "narrow-forest-path", "setting": "Тёмный лес с узкой тропой",
             "situation": "Фонарик гаснет, и нужно идти в темноте либо ждать рассвет",
             "symbolism": "Движение в неизвестность без карты"},
            {"id": "cracking-ice", "setting": "Замёрзшее озеро в сумерках",
             "situation": "Лёд трещит под ногами, и нужно выбрать: бежать или замереть",
             "symbolism": "Хрупкость контроля и риск провала"},
        ],
        "choice_points": [
            "Отпустить контроль или держаться?",
            "Показать слабость или сохранить маску?",
            "Довериться или рассчитывать на себя?",
        ],
    },
    {
        "id": "authenticity-vs-expectations",
        "question": "Кто я, если перестану соответствовать чужим ожиданиям?",
        "theme": "Идентичность и роли",
        "astro_indicators": [
            "Солнце-Сатурн/Плутон",
            "Луна в 10-м доме",
            "Сильный карьерный акцент",
        ],
        "common_traps": [
            {"name": "Перфекционизм",
             "description": "Стремление быть идеальной версией себя"},
            {"name": "Потеря в ролях",
             "description": "Жить чужими сценариями и забыть собственный голос"},
            {"name": "Страх отвержения",
             "description": "Верить, что настоящую тебя не примут"},
        ],
        "scenarios": [
            {"id": "empty-dressing-room", "setting": "Пустая гримёрка после спектакля",
             "situation": "Ты снимаешь грим и не узнаёшь себя в зеркале",
             "symbolism": "Маска и лицо под ней"},
            {"id": "closed-fitting-room", "setting": "Примерочная в закрытом магазине",
             "situation": "Ты застряла в чужой одежде, которая выглядит идеально, но душит",
             "symbolism": "Чужие роли как тесный костюм"},
            {"id": "silent-recording-booth", "setting": "Студия звукозаписи",
             "situation": "Нужно записать сообщение, но какой голос выбрать?",
             "symbolism": "Поиск своего звучания"},
        ],
        "choice_points": [
            "Снять маску или держать образ?",
            "Сказать правду или то, что ждут?",
            "Быть собой или удобной версией?",
        ],
    },
    {
        "id": "release-past",
        "question": "Как отпустить прошлое, которое всё ещё держит меня?",
        "theme": "Прошлое и освобождение",
        "astro_indicators": [
            "Сатурн/Плутон 4/12 дом",
            "Южный узел с личными планетами",
            "Сильная ретроспекция",
        ],
        "common_traps": [
            {"name": "Застревание",
             "description": "Постоянное проигрывание старых обид"},
            {"name": "Идеализация или демонизация",
             "description": "Видеть прошлое только белым или чёрным, чтобы не встретиться с реальностью"},
            {"name": "Месть как зависание",
             "description": "Иллюзия, что возмездие освободит"},
        ],
        "scenarios": [
            {"id": "dusty-basement", "setting": "Подвал с коробками",
             "situation": "Каждая вещь — воспоминание, и нужно решить, что оставить",
             "symbolism": "Материализация памяти"},
            {"id": "stormy-shore", "setting": "Берег в шторм",
             "situation": "Волны разрушают песчаный замок, построенный годами",
             "symbolism": "Разрушение старых структур"},
            {"id": "abandoned-childhood-home", "setting": "Заброшенный дом детства",
             "situation": "Призраки прошлого пытаются удержать тебя внутри",
             "symbolism": "Возвращение к истокам ради завершения"},
        ],
        "choice_points": [
            "Сохранить или отпустить?",
            "Простить или держать обиду?",
            "Вернуться или шагнуть вперёд?",
        ],
    },
]

FALLBACK_CONTRACTS: tuple[PsychologicalContract, ...] = tuple(
    PsychologicalContract.model_validate(raw) for raw in _RAW_CONTRACTS
)
