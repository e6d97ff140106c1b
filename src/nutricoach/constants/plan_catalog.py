"""
Centralized plan catalog constants.

This module defines all subscription tier prices, per-feature limits and
à la carte packs in one place. Models and services build on top of it.
"""

UNLIMITED = -1  # No cap, usage is not tracked

# Period identifiers
DAY = "day"
WEEK = "week"

# Pricing Configuration
TRIAL_DAYS = 7
CURRENCY = "BRL"
CURRENCY_SYMBOL = "R$"

# Basic Tier Configuration
BASIC_PRICE_MONTHLY = 19.90
BASIC_PRICE_ANNUAL = 199.00

# Pro Tier Configuration
PRO_PRICE_MONTHLY = 39.90
PRO_PRICE_ANNUAL = 399.00

# Premium Tier Configuration
PREMIUM_PRICE_MONTHLY = 59.90
PREMIUM_PRICE_ANNUAL = 599.00

# Descriptions for the plans page
BASIC_DESCRIPTION = "O essencial para começar sua reeducação alimentar"
PRO_DESCRIPTION = "Planos inteligentes e IA no dia a dia da sua dieta"
PREMIUM_DESCRIPTION = "Tudo ilimitado para quem leva a nutrição a sério"

# Feature display texts, keyed by feature key
FEATURE_TEXTS = {
    # Daily features
    "dailyPlanGenerations": "Geração de plano diário",
    "dayRegenerations": "Regeneração de dia do plano",
    "chatImports": "Importação de plano do chat",
    "macroAdjustments": "Ajuste de macros do dia",
    "progressAnalyses": "Análise de progresso com IA",
    "chatInteractions": "Interações com o chat IA",
    "itemSwaps": "Substituição de itens da refeição",
    "mealAnalysesText": "Análise de texto da refeição",
    "mealAnalysesImage": "Análise de imagem da refeição",
    # Weekly features
    "weeklyPlanGenerations": "Geração de plano semanal",
    "shoppingLists": "Lista de compras",
    "recipeSearches": "Busca de receitas",
    "imageGen": "Geração de imagens de receitas",
}

# Per tier feature limits: feature key -> (limit, period, available)
BASIC_FEATURES = {
    "dailyPlanGenerations": (1, DAY, True),
    "dayRegenerations": (1, DAY, True),
    "chatImports": (1, DAY, True),
    "macroAdjustments": (1, DAY, True),
    "progressAnalyses": (1, DAY, True),
    "chatInteractions": (10, DAY, True),
    "itemSwaps": (3, DAY, True),
    "mealAnalysesText": (3, DAY, True),
    "mealAnalysesImage": (1, DAY, True),
    "weeklyPlanGenerations": (1, WEEK, True),
    "shoppingLists": (1, WEEK, True),
    "recipeSearches": (5, WEEK, True),
    "imageGen": (0, WEEK, False),  # Pro and up only
}

PRO_FEATURES = {
    "dailyPlanGenerations": (5, DAY, True),
    "dayRegenerations": (5, DAY, True),
    "chatImports": (5, DAY, True),
    "macroAdjustments": (5, DAY, True),
    "progressAnalyses": (3, DAY, True),
    "chatInteractions": (50, DAY, True),
    "itemSwaps": (20, DAY, True),
    "mealAnalysesText": (20, DAY, True),
    "mealAnalysesImage": (10, DAY, True),
    "weeklyPlanGenerations": (3, WEEK, True),
    "shoppingLists": (5, WEEK, True),
    "recipeSearches": (30, WEEK, True),
    "imageGen": (10, WEEK, True),
}

PREMIUM_FEATURES = {
    "dailyPlanGenerations": (UNLIMITED, DAY, True),
    "dayRegenerations": (UNLIMITED, DAY, True),
    "chatImports": (UNLIMITED, DAY, True),
    "macroAdjustments": (UNLIMITED, DAY, True),
    "progressAnalyses": (UNLIMITED, DAY, True),
    "chatInteractions": (UNLIMITED, DAY, True),
    "itemSwaps": (UNLIMITED, DAY, True),
    "mealAnalysesText": (UNLIMITED, DAY, True),
    "mealAnalysesImage": (UNLIMITED, DAY, True),
    "weeklyPlanGenerations": (UNLIMITED, WEEK, True),
    "shoppingLists": (UNLIMITED, WEEK, True),
    "recipeSearches": (UNLIMITED, WEEK, True),
    "imageGen": (50, WEEK, True),
}

# À la carte packs: feature key -> (pack size, price). Features not listed are not sold.
FEATURE_PACKS = {
    "chatInteractions": (20, 4.90),
    "mealAnalysesText": (10, 3.90),
    "mealAnalysesImage": (5, 4.90),
    "progressAnalyses": (3, 2.90),
    "weeklyPlanGenerations": (1, 4.90),
    "recipeSearches": (10, 3.90),
    "imageGen": (10, 9.90),
}
