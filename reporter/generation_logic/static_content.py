"""Fixed texts handed to the synthesis call and the fallback outcomes used when its reply is unusable."""

from reporter.models.report_models import DetailedSolution
from reporter.models.report_models import ModificationOutcome
from reporter.models.report_models import ReportOutcome

REPORT_PERSONA = (
    "Sei un assistente esperto nell'analisi di problemi tecnici e professionali. "
    "Rispondi sempre in italiano e fornisci analisi dettagliate, professionali ed esaustive."
)

MODIFICATION_PERSONA = (
    "Sei un assistente esperto nella modifica di fogli di calcolo e documenti professionali. "
    "Rispondi sempre in italiano, applica con precisione le istruzioni ricevute "
    "e restituisci esclusivamente il JSON richiesto."
)

# Rendered wherever a prompt section has nothing to show
EMPTY_SECTION_MARKER = "[]"

REPORT_TEMPLATE = "report_prompt.jinja2"
MODIFICATION_TEMPLATE = "modification_prompt.jinja2"

DEFAULT_REPORT_OUTCOME = ReportOutcome(
    problem_description="Problema generico rilevato",
    user_solution=None,
    detailed_solutions=[
        DetailedSolution(
            title="Soluzione generica",
            description="Analisi più approfondita necessaria",
            steps=["Identificare la causa", "Applicare correzione", "Verificare risultato"],
            priority="media",
            estimated_time="30-60 minuti",
            required_tools=["Strumenti standard"],
        )
    ],
    preventive_recommendations=["Monitorare la situazione", "Controlli periodici"],
    management_summary="Problema segnalato e in fase di risoluzione",
)

# No new_content: a file is never fabricated from the fallback
DEFAULT_MODIFICATION_OUTCOME = ModificationOutcome(
    modification_type=None,
    new_content=None,
    modifications="Nessuna modifica applicata: la risposta del modello non è utilizzabile.",
    summary="Impossibile completare la modifica richiesta.",
)
