"""Static question bank.

Questions are grouped into sets of equal length; each session plays one
set, chosen when the session is created (see ``next_set_index``). The bank
is read-only for the lifetime of the process.
"""
from dataclasses import dataclass
from typing import List, Optional, Tuple

from quizroom.errors import QuestionIndexOutOfRange


@dataclass(frozen=True)
class Question:
    index: int  # 1-based position inside its set
    prompt: str
    answer_options: Tuple[str, str, str, str]
    correct_option_index: int
    point_value: int
    explanation: str
    source: str = ''

    def to_dict(self, reveal: bool = False) -> dict:
        data = {
            'index': self.index,
            'prompt': self.prompt,
            'answer_options': list(self.answer_options),
            'point_value': self.point_value,
        }
        if reveal:
            data['correct_option_index'] = self.correct_option_index
            data['explanation'] = self.explanation
            data['source'] = self.source
        return data


@dataclass(frozen=True)
class QuestionSet:
    name: str
    questions: Tuple[Question, ...]

    def __len__(self) -> int:
        return len(self.questions)


def _set(name, rows) -> QuestionSet:
    questions = tuple(
        Question(index=i, prompt=p, answer_options=tuple(opts), correct_option_index=c,
                 point_value=v, explanation=e, source=s)
        for i, (p, opts, c, v, e, s) in enumerate(rows, start=1)
    )
    return QuestionSet(name=name, questions=questions)


QUESTION_SETS: Tuple[QuestionSet, ...] = (
    _set('SET A', [
        ("Which protocol do browsers use for encrypted web traffic?",
         ("FTP", "HTTPS", "SMTP", "Telnet"), 1, 1,
         "HTTPS is HTTP carried over TLS; it is now the default for almost every site.",
         "IETF RFC 2818"),
        ("What does the 'www' in a web address stand for?",
         ("World Wide Web", "Wide Web World", "Web World Wide", "World Web Window"), 0, 1,
         "The World Wide Web was proposed by Tim Berners-Lee at CERN in 1989.",
         "CERN"),
        ("Which company created the Android operating system before it was acquired?",
         ("Google", "Android Inc.", "Nokia", "Samsung"), 1, 1,
         "Android Inc. was founded in 2003 and bought by Google in 2005.",
         "Google corporate history"),
        ("How many bits are there in one byte?",
         ("4", "8", "16", "32"), 1, 1,
         "A byte is eight bits on every mainstream architecture today.",
         "ISO/IEC 80000-13"),
        ("Which HTTP status code means 'Not Found'?",
         ("200", "301", "404", "500"), 2, 2,
         "404 is the client error returned when a resource does not exist.",
         "IETF RFC 9110"),
    ]),
    _set('SET B', [
        ("Which language is primarily used to style web pages?",
         ("HTML", "CSS", "SQL", "Bash"), 1, 1,
         "CSS describes presentation; HTML describes structure.",
         "W3C"),
        ("What does 'URL' stand for?",
         ("Uniform Resource Locator", "Universal Routing Link", "User Request Line", "Unified Resource Label"), 0, 1,
         "A URL locates a resource and says how to reach it.",
         "IETF RFC 3986"),
        ("Which port does HTTPS use by default?",
         ("21", "80", "443", "8080"), 2, 1,
         "Port 443 is registered for HTTP over TLS.",
         "IANA service name registry"),
        ("What is the name of the first graphical web browser to become popular?",
         ("Mosaic", "Opera", "Lynx", "Konqueror"), 0, 2,
         "NCSA Mosaic (1993) popularised inline images on the web.",
         "NCSA"),
        ("Which of these is a relational database?",
         ("Redis", "PostgreSQL", "Memcached", "Kafka"), 1, 2,
         "PostgreSQL is an open source object-relational database.",
         "postgresql.org"),
    ]),
    _set('SET C', [
        ("What does 'CPU' stand for?",
         ("Central Processing Unit", "Computer Power Unit", "Core Program Utility", "Central Peripheral Unit"), 0, 1,
         "The CPU executes the instructions of a program.",
         "IEEE glossary"),
        ("Which data format uses curly braces and key/value pairs and is common in web APIs?",
         ("CSV", "YAML", "JSON", "INI"), 2, 1,
         "JSON grew out of JavaScript object literals.",
         "ECMA-404"),
        ("What does DNS translate domain names into?",
         ("Email addresses", "IP addresses", "MAC addresses", "File paths"), 1, 1,
         "The Domain Name System maps human-readable names to IP addresses.",
         "IETF RFC 1034"),
        ("Which version of the Internet Protocol uses 128-bit addresses?",
         ("IPv2", "IPv4", "IPv6", "IPv8"), 2, 2,
         "IPv6 addresses are 128 bits long; IPv4 addresses are 32 bits.",
         "IETF RFC 8200"),
        ("What kind of attack floods a service with traffic from many machines?",
         ("Phishing", "DDoS", "SQL injection", "Man-in-the-middle"), 1, 2,
         "A distributed denial of service overwhelms a target from many sources.",
         "CISA"),
    ]),
    _set('SET D', [
        ("Which company develops the Chrome web browser?",
         ("Mozilla", "Apple", "Google", "Microsoft"), 2, 1,
         "Chrome was released by Google in 2008.",
         "Google"),
        ("What is a 'cookie' in web browsing?",
         ("A small piece of data stored by the browser", "A type of virus", "A compressed image", "A browser plugin"), 0, 1,
         "Cookies let sites remember state such as a login between requests.",
         "IETF RFC 6265"),
        ("Which of these is a version control system?",
         ("Git", "Nginx", "Docker", "Vim"), 0, 1,
         "Git was written by Linus Torvalds in 2005.",
         "git-scm.com"),
        ("What does 'QR' in QR code stand for?",
         ("Quick Response", "Quality Read", "Query Result", "Quantum Resolution"), 0, 2,
         "QR codes were invented by Denso Wave in 1994 to track car parts.",
         "Denso Wave"),
        ("Which unit measures a network's data transfer rate?",
         ("Hertz", "Bits per second", "Pixels", "Watts"), 1, 2,
         "Bandwidth is quoted in bits per second, often Mbit/s or Gbit/s.",
         "ITU"),
    ]),
)


def _validate(question_sets) -> None:
    for qs in question_sets:
        if not qs.questions:
            raise ValueError(f"Question set {qs.name} is empty")
        for q in qs.questions:
            if len(q.answer_options) != 4:
                raise ValueError(f"{qs.name} question {q.index} must have 4 options")
            if not 0 <= q.correct_option_index < 4:
                raise ValueError(f"{qs.name} question {q.index} has no valid correct option")
            if q.point_value <= 0:
                raise ValueError(f"{qs.name} question {q.index} must be worth points")


_validate(QUESTION_SETS)


def get_question_set(set_index: int) -> QuestionSet:
    return QUESTION_SETS[set_index % len(QUESTION_SETS)]


def get_question(set_index: int, question_index: int) -> Question:
    """Return the 1-based ``question_index`` of a set or raise QuestionIndexOutOfRange."""
    questions: List[Question] = list(get_question_set(set_index).questions)
    if not 1 <= question_index <= len(questions):
        raise QuestionIndexOutOfRange(question_index, len(questions))
    return questions[question_index - 1]


def next_set_index(previous: Optional[int]) -> int:
    """Set that follows ``previous`` in rotation; the first session plays set 0."""
    if previous is None:
        return 0
    return (previous + 1) % len(QUESTION_SETS)
