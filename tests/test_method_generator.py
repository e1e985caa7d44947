import textwrap

import pytest

from rest_metadata.config import AutoPathParameter, GeneratorConfig
from rest_metadata.errors import GenerationError
from rest_metadata.generator.method import MethodGenerator, default_response_data, merge_responses
from rest_metadata.generator.types import TypeResolver
from rest_metadata.parser.base import ResponseType, Type
from rest_metadata.parser.source import SourceTree

MODELS = '''
class Person(BaseModel):
    name: str
'''


def _generator(method_source: str, controller_path: str = "people", config: GeneratorConfig | None = None):
    source = MODELS + "\n\nclass People:\n" + textwrap.indent(textwrap.dedent(method_source), "    ")
    tree = SourceTree.from_source(source, "api.py")
    owner = tree.find_class("People")
    return MethodGenerator(config or GeneratorConfig(), TypeResolver(tree), owner, owner.methods()[0], controller_path)


class TestValidity:
    def test_no_verb_is_invalid(self):
        gen = _generator("def helper(self): pass\n")
        assert gen.is_valid() is False
        assert gen.get_name() == "helper"
        with pytest.raises(GenerationError):
            gen.generate()

    def test_many_verbs_fail_fast_and_name_the_method(self):
        with pytest.raises(GenerationError) as exc:
            _generator('''
                @GET
                @POST
                def ambiguous(self): pass
            ''')
        assert "People.ambiguous" in str(exc.value)
        assert "GET, POST" in str(exc.value)

    def test_verb_is_lowercased(self):
        method = _generator("@swagger.PATCH()\ndef f(self): pass\n").generate()
        assert method.method == "patch"


class TestPath:
    def test_path_is_normalized_and_prefixed(self):
        method = _generator("@GET\n@Path('//:id/')\ndef f(self): pass\n").generate()
        assert method.path == "/{id}"

    def test_no_path_is_empty(self):
        assert _generator("@GET\ndef f(self): pass\n").generate().path == ""

    def test_two_paths_fail(self):
        with pytest.raises(GenerationError, match="Only one Path"):
            _generator("@GET\n@Path('a')\n@Path('b')\ndef f(self): pass\n")


class TestDefaultResponse:
    def test_void_is_204(self):
        method = _generator("@DELETE\ndef f(self) -> None: pass\n").generate()
        [response] = method.responses
        assert response.status == "204"
        assert response.description == "No content"
        assert response.schema_.type_name == "void"

    def test_missing_return_annotation_is_void(self):
        assert _generator("@POST\ndef f(self): pass\n").generate().responses[0].status == "204"

    def test_new_resource_is_201_with_inner_schema(self):
        method = _generator("@POST\ndef f(self) -> Return.NewResource[Person]: pass\n").generate()
        [response] = method.responses
        assert response.status == "201"
        assert response.schema_.type_name == "Person"
        assert response.description == "Ok"

    def test_download_is_buffer(self):
        method = _generator("@GET\ndef f(self) -> DownloadResource: pass\n").generate()
        assert method.responses[0].status == "200"
        assert method.responses[0].schema_.type_name == "buffer"

    def test_plain_type_is_200(self):
        method = _generator("@GET\nasync def f(self) -> Person: pass\n").generate()
        assert method.responses[0].status == "200"
        assert method.responses[0].schema_.type_name == "Person"
        assert method.type.type_name == "Person"

    def test_status_table(self):
        cases = {
            "RequestAccepted": "202",
            "MovedPermanently": "301",
            "MovedTemporarily": "302",
            "DownloadBinaryData": "200",
        }
        for wrapper, status in cases.items():
            assert default_response_data(Type(type_name=wrapper))[0] == status

    def test_wrapper_without_argument_keeps_itself(self):
        status, schema = default_response_data(Type(type_name="RequestAccepted"))
        assert status == "202"
        assert schema.type_name == "RequestAccepted"


class TestMergeResponses:
    def test_no_explicit_responses(self):
        default = ResponseType(status="200", description="Ok")
        assert merge_responses([], default) == [default]

    def test_default_appended_after_other_statuses(self):
        explicit = [ResponseType(status="500", description="Boom")]
        default = ResponseType(status="200", description="Ok")
        merged = merge_responses(explicit, default)
        assert [r.status for r in merged] == ["500", "200"]

    def test_shared_status_adopts_default_examples(self):
        explicit = [ResponseType(status="200", description="Explicit", examples=None)]
        default = ResponseType(status="200", description="Ok", examples={"name": "Joe"})
        [merged] = merge_responses(explicit, default)
        assert merged.description == "Explicit"
        assert merged.examples == {"name": "Joe"}

    def test_explicit_examples_win(self):
        explicit = [ResponseType(status="201", description="Created", examples={"name": "A"})]
        default = ResponseType(status="201", description="Ok", examples={"name": "B"})
        assert merge_responses(explicit, default)[0].examples == {"name": "A"}

    def test_explicit_responses_from_decorators(self):
        method = _generator('''
            @Response[Person](200, "All good")
            @Response[str](401, "Unauthorized", {"message": "denied"})
            @Example[Person]({"name": "Joe"})
            @GET
            def f(self) -> Person: pass
        ''').generate()
        assert [r.status for r in method.responses] == ["200", "401"]
        assert method.responses[0].description == "All good"
        assert method.responses[0].examples == {"name": "Joe"}
        assert method.responses[1].schema_.type_name == "string"
        assert method.responses[1].examples == {"message": "denied"}

    def test_two_examples_fail(self):
        with pytest.raises(GenerationError, match="Only one Example"):
            _generator('''
                @Example(1)
                @Example(2)
                @GET
                def f(self) -> int: pass
            ''').generate()


class TestParameters:
    def test_context_and_cookie_are_dropped(self):
        method = _generator('''
            @GET
            def f(
                self,
                q: Annotated[str, QueryParam('q')],
                req: Annotated[object, Context],
                c: Annotated[str, CookieParam('c')],
            ): pass
        ''').generate()
        assert [p.name for p in method.parameters] == ["q"]

    def test_ignored_parameters(self):
        config = GeneratorConfig(ignore_parameters=["request", "response"])
        method = _generator("@GET\ndef f(self, request, response): pass\n", config=config).generate()
        assert method.parameters == []

    def test_parameter_error_names_location(self):
        with pytest.raises(GenerationError) as exc:
            _generator("@GET\ndef f(self, request): pass\n").generate()
        assert "People.f" in str(exc.value)
        assert "request" in str(exc.value)

    def test_body_type_appends_body(self):
        method = _generator("@POST\n@BodyType(Person)\ndef f(self): pass\n").generate()
        [body] = method.parameters
        assert body.location == "body"
        assert body.name == "body"
        assert body.type.type_name == "Person"

    def test_two_bodies_fail(self):
        with pytest.raises(GenerationError, match="Only one body"):
            _generator("@POST\n@BodyType(Person)\ndef f(self, p: Person): pass\n").generate()

    def test_body_with_form_data_fails(self):
        with pytest.raises(GenerationError, match="body parameter"):
            _generator('''
                @POST
                def f(self, p: Person, name: Annotated[str, FormParam('name')]): pass
            ''').generate()

    def test_param_descriptions_from_docstring(self):
        method = _generator('''
            @GET
            def f(self, q: Annotated[str, QueryParam('q')]):
                """Search.

                :param q: Search text
                """
        ''').generate()
        assert method.parameters[0].description == "Search text"
        assert method.description == "Search."


class TestPathParameters:
    CONFIG = GeneratorConfig(auto_path_parameters=[AutoPathParameter(pattern="^AUTOID_", type="long", description="auto id parameter")])

    def test_explicit_wins_over_inferred(self):
        method = _generator('''
            @Path(':AUTOID_test/test/:nonAutoParam')
            @GET
            @ParamFromPath('nonAutoParam', PrimitiveTypes.string, 'explicit')
            def f(self): pass
        ''', controller_path="primitives", config=self.CONFIG).generate()
        params = {p.name: p for p in method.parameters}
        assert len(method.parameters) == 2
        assert all(p.location == "path" for p in method.parameters)
        assert params["AUTOID_test"].type.type_name == "long"
        assert params["AUTOID_test"].description == "auto id parameter"
        assert params["nonAutoParam"].type.type_name == "string"

    def test_explicit_declaration_listed_after_is_not_overridden(self):
        method = _generator('''
            @Path(':AUTOID_test/:other')
            @GET
            @ParamFromPath('other', 'string')
            @ParamFromPath('AUTOID_test', PrimitiveTypes.string, 'intentional override')
            def f(self): pass
        ''', config=self.CONFIG).generate()
        params = {p.name: p for p in method.parameters}
        assert len(method.parameters) == 2
        assert params["AUTOID_test"].type.type_name == "string"

    def test_path_param_argument_is_not_overridden(self):
        method = _generator('''
            @Path(':AUTOID_x')
            @GET
            def f(self, x: Annotated[str, PathParam('AUTOID_x')]): pass
        ''', config=self.CONFIG).generate()
        [param] = method.parameters
        assert param.type.type_name == "string"

    def test_controller_placeholders_are_scanned(self):
        method = _generator("@GET\ndef f(self): pass\n", controller_path="parents/{AUTOID_parent}", config=self.CONFIG).generate()
        [param] = method.parameters
        assert param.name == "AUTOID_parent"

    def test_unmatched_placeholders_are_skipped(self):
        method = _generator("@GET\n@Path(':slug')\ndef f(self): pass\n", config=self.CONFIG).generate()
        assert method.parameters == []

    def test_first_matching_rule_wins(self):
        config = GeneratorConfig(auto_path_parameters=[
            AutoPathParameter(pattern="_id$", type="long", description="first"),
            AutoPathParameter(pattern="^user", type="string", description="second"),
        ])
        method = _generator("@GET\n@Path(':user_id')\ndef f(self): pass\n", config=config).generate()
        [param] = method.parameters
        assert param.description == "first"


class TestMethodFields:
    def test_decorator_fields(self):
        method = _generator('''
            @GET
            @Tags("admin", "people")
            @Produces("application/json")
            @Accept("text/plain")
            @Security("oauth", ["read"])
            @BasePath("/override")
            @Plural
            @deprecated("use g")
            def f(self) -> str:
                """
                :summary: Get people
                """
        ''').generate()
        assert method.tags == ["admin", "people"]
        assert method.produces == ["application/json"]
        assert method.consumes == ["text/plain"]
        assert method.security[0].name == "oauth"
        assert method.security[0].scopes == ["read"]
        assert method.base_path == "/override"
        assert method.is_plural is True
        assert method.deprecated is True
        assert method.summary == "Get people"

    def test_defaults(self):
        method = _generator("@GET\ndef f(self) -> str: pass\n").generate()
        assert method.tags == []
        assert method.security is None
        assert method.base_path == ""
        assert method.is_plural is False
        assert method.deprecated is False

    def test_duplicate_tags_fail(self):
        with pytest.raises(GenerationError, match="Only one Tags"):
            _generator("@GET\n@Tags('a')\n@Tags('b')\ndef f(self): pass\n").generate()
